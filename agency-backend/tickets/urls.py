# tickets/urls.py
from django.urls import path
from .api import PaymentCreateView, TicketDetailView, TicketListCreateView

app_name = "tickets"

urlpatterns = [
    path("", TicketListCreateView.as_view(), name="ticket-list-create"),
    path("payments", PaymentCreateView.as_view(), name="payment-create"),
    path("<int:pk>", TicketDetailView.as_view(), name="ticket-detail"),
]
