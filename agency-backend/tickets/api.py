# tickets/api.py
import logging

from django.db import IntegrityError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from airlines.catalog import ensure_airline_catalog
from airlines.commission import CommissionError
from common.permissions import RoleRequired, user_job_title, user_role
from common.roles import AgencyRole
from staff.assignment import can_process_payments, can_sell_tickets
from .metrics import calculate_ticket_metrics
from .models import TicketSale
from .serializers import PaymentCreateSerializer, PaymentSerializer, TicketSaleSerializer, TicketWriteSerializer
from .services import TicketError, create_ticket, delete_ticket, record_payment, update_ticket

logger = logging.getLogger(__name__)

TICKET_LIST_LIMIT = 200


def _metrics_payload(metrics):
    return {key: str(value) for key, value in metrics.items()}


def _seller_forbidden(request):
    """Employees may only write tickets when their job title allows selling."""
    return user_role(request.user) == AgencyRole.EMPLOYEE and not can_sell_tickets(user_job_title(request.user))


class TicketListCreateView(APIView):
    """
    GET  /api/v1/tickets/           latest sales + metrics
    POST /api/v1/tickets/           { ticket_number, customer_name, route, travel_class, travel_date,
                                      amount, base_fare_amount?, agency_markup_amount?, airline, seller?, ... }
    """
    permission_classes = [IsAuthenticated, RoleRequired]
    permission_roles = {"POST": [AgencyRole.ADMIN, AgencyRole.MANAGER, AgencyRole.EMPLOYEE]}

    def get(self, request):
        tickets = list(
            TicketSale.objects.select_related("airline", "seller").order_by("-sold_at", "-id")[:TICKET_LIST_LIMIT]
        )
        return Response({
            "data": TicketSaleSerializer(tickets, many=True).data,
            "metrics": _metrics_payload(calculate_ticket_metrics(tickets)),
        }, status=200)

    def post(self, request):
        if _seller_forbidden(request):
            return Response({"error": "Fonction non autorisée pour encoder des billets."}, status=403)

        serializer = TicketWriteSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": serializer.errors}, status=400)

        data = dict(serializer.validated_data)
        data.setdefault("seller", request.user)
        if user_role(request.user) == AgencyRole.EMPLOYEE and data["seller"].pk != request.user.pk:
            return Response({"error": "Accès refusé."}, status=403)
        if data.get("agency_markup_amount") is None:
            data.pop("agency_markup_amount", None)

        ensure_airline_catalog()
        try:
            ticket = create_ticket(performed_by=request.user, **data)
        except (CommissionError, TicketError) as exc:
            return Response({"error": str(exc)}, status=400)
        except IntegrityError:
            logger.exception("Ticket create failed for %s", data.get("ticket_number"))
            return Response({"error": "Conflit de données: vérifiez les champs uniques."}, status=400)

        return Response({"data": TicketSaleSerializer(ticket).data}, status=201)


class TicketDetailView(APIView):
    """
    GET    /api/v1/tickets/<id>
    PATCH  /api/v1/tickets/<id>   partial ticket fields; the commission is recomputed
    DELETE /api/v1/tickets/<id>
    """
    permission_classes = [IsAuthenticated, RoleRequired]
    permission_roles = {
        "PATCH": [AgencyRole.ADMIN, AgencyRole.EMPLOYEE],
        "DELETE": [AgencyRole.ADMIN, AgencyRole.EMPLOYEE],
    }

    def _get_ticket(self, pk):
        return TicketSale.objects.select_related("airline", "seller").filter(pk=pk).first()

    def _owner_forbidden(self, request, ticket):
        return user_role(request.user) == AgencyRole.EMPLOYEE and ticket.seller_id != request.user.pk

    def get(self, request, pk):
        ticket = self._get_ticket(pk)
        if not ticket:
            return Response({"error": "Billet introuvable."}, status=404)
        return Response({"data": TicketSaleSerializer(ticket).data}, status=200)

    def patch(self, request, pk):
        if _seller_forbidden(request):
            return Response({"error": "Fonction non autorisée pour modifier des billets."}, status=403)

        ticket = self._get_ticket(pk)
        if not ticket:
            return Response({"error": "Billet introuvable."}, status=404)
        if self._owner_forbidden(request, ticket):
            return Response({"error": "Accès refusé."}, status=403)

        serializer = TicketWriteSerializer(instance=ticket, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response({"error": serializer.errors}, status=400)

        changes = dict(serializer.validated_data)
        next_seller = changes.get("seller", ticket.seller)
        if user_role(request.user) == AgencyRole.EMPLOYEE and next_seller.pk != request.user.pk:
            return Response({"error": "Accès refusé."}, status=403)

        ensure_airline_catalog()
        try:
            ticket = update_ticket(ticket, changes, performed_by=request.user)
        except (CommissionError, TicketError) as exc:
            return Response({"error": str(exc)}, status=400)
        except IntegrityError:
            logger.exception("Ticket update failed for ticket %s", pk)
            return Response({"error": "Conflit de données: vérifiez les champs uniques."}, status=400)

        return Response({"data": TicketSaleSerializer(ticket).data}, status=200)

    def delete(self, request, pk):
        if _seller_forbidden(request):
            return Response({"error": "Fonction non autorisée pour supprimer des billets."}, status=403)

        ticket = self._get_ticket(pk)
        if not ticket:
            return Response({"error": "Billet introuvable."}, status=404)
        if self._owner_forbidden(request, ticket):
            return Response({"error": "Accès refusé."}, status=403)

        delete_ticket(ticket, performed_by=request.user)
        return Response({"success": True}, status=200)


class PaymentCreateView(APIView):
    """
    POST /api/v1/tickets/payments  { ticket_id, amount, method, reference?, paid_at? }
    """
    permission_classes = [IsAuthenticated, RoleRequired]
    permission_roles = {
        "POST": [AgencyRole.ADMIN, AgencyRole.MANAGER, AgencyRole.ACCOUNTANT, AgencyRole.EMPLOYEE],
    }

    def post(self, request):
        role = user_role(request.user)
        if role == AgencyRole.EMPLOYEE and not can_process_payments(user_job_title(request.user)):
            return Response({"error": "Fonction non autorisée pour enregistrer des paiements."}, status=403)

        serializer = PaymentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": serializer.errors}, status=400)

        data = serializer.validated_data
        try:
            result = record_payment(
                data["ticket_id"],
                data["amount"],
                method=data["method"],
                reference=data.get("reference", ""),
                paid_at=data.get("paid_at"),
                performed_by=request.user,
            )
        except TicketSale.DoesNotExist:
            return Response({"error": "Billet introuvable."}, status=404)
        except TicketError as exc:
            return Response({"error": str(exc)}, status=400)

        return Response({
            "data": {
                "payment": PaymentSerializer(result.payment).data,
                "ticket": {
                    "id": result.ticket.id,
                    "ticket_number": result.ticket.ticket_number,
                    "amount": str(result.ticket.amount),
                    "payment_status": result.ticket.payment_status,
                    "currency": result.ticket.currency,
                },
                "paid_total": str(result.paid_total),
            }
        }, status=201)
