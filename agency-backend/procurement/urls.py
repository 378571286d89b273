# procurement/urls.py
from django.urls import path
from .api import (
    NeedRequestListCreateView,
    NeedRequestPdfView,
    NeedRequestReviewView,
    StockItemListView,
    StockMovementListCreateView,
)

app_name = "procurement"

urlpatterns = [
    path("needs", NeedRequestListCreateView.as_view(), name="need-list-create"),
    path("needs/<int:pk>/review", NeedRequestReviewView.as_view(), name="need-review"),
    path("needs/<int:pk>/pdf", NeedRequestPdfView.as_view(), name="need-pdf"),
    path("stock/items", StockItemListView.as_view(), name="stock-items"),
    path("stock/movements", StockMovementListCreateView.as_view(), name="stock-movements"),
]
