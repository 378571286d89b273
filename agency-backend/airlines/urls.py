# airlines/urls.py
from django.urls import path
from .api import AirlineListCreateView

app_name = "airlines"

urlpatterns = [
    path("", AirlineListCreateView.as_view(), name="airline-list-create"),
]
