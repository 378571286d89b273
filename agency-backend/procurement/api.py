# procurement/api.py
from django.db.models import Prefetch
from django.http import HttpResponse
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.permissions import RoleRequired, user_job_title, user_role
from common.roles import AgencyRole
from staff.assignment import is_procurement_officer
from .ledger import NeedRequestNotFound, StockMovementError, post_stock_movement
from .models import NeedRequest, StockItem, StockMovement
from .needs import NeedRequestError, review_need_request, submit_need_request
from .pdf import render_need_request_pdf
from .serializers import (
    NeedRequestCreateSerializer,
    NeedRequestSerializer,
    NeedReviewSerializer,
    StockItemSerializer,
    StockMovementCreateSerializer,
    StockMovementSerializer,
)

NEED_LIST_LIMIT = 200
ITEM_LIST_LIMIT = 300
MOVEMENT_LIST_LIMIT = 400
ITEM_MOVEMENT_LIMIT = 25


def _employee_outside_procurement(request):
    return user_role(request.user) == AgencyRole.EMPLOYEE and not is_procurement_officer(user_job_title(request.user))


class NeedRequestListCreateView(APIView):
    """
    GET  /api/v1/procurement/needs?status=    employees only see their own requests
    POST /api/v1/procurement/needs  { title, category, details?, quantity, unit, estimated_amount?, currency? }
    """
    permission_classes = [IsAuthenticated, RoleRequired]
    permission_roles = {"POST": [AgencyRole.ADMIN, AgencyRole.MANAGER, AgencyRole.EMPLOYEE]}

    def get(self, request):
        qs = NeedRequest.objects.select_related("requester", "reviewed_by")
        status_f = (request.GET.get("status") or "").strip().upper()
        if status_f:
            qs = qs.filter(status=status_f)
        if user_role(request.user) == AgencyRole.EMPLOYEE:
            qs = qs.filter(requester=request.user)
        needs = qs.order_by("-created_at", "-id")[:NEED_LIST_LIMIT]
        return Response({"data": NeedRequestSerializer(needs, many=True).data}, status=200)

    def post(self, request):
        if _employee_outside_procurement(request):
            return Response(
                {"error": "Seul le service approvisionnement peut émettre un état de besoin."}, status=403
            )

        serializer = NeedRequestCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": serializer.errors}, status=400)

        need = submit_need_request(request.user, **serializer.validated_data)
        return Response({"data": NeedRequestSerializer(need).data}, status=201)


class NeedRequestReviewView(APIView):
    """
    POST /api/v1/procurement/needs/<id>/review  { status: APPROVED|REJECTED, review_comment? }
    """
    permission_classes = [IsAuthenticated, RoleRequired]
    permission_roles = {"POST": [AgencyRole.ADMIN, AgencyRole.MANAGER, AgencyRole.ACCOUNTANT]}

    def post(self, request, pk):
        need = NeedRequest.objects.filter(pk=pk).first()
        if not need:
            return Response({"error": "État de besoin introuvable."}, status=404)

        serializer = NeedReviewSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": serializer.errors}, status=400)

        try:
            need = review_need_request(
                need,
                request.user,
                serializer.validated_data["status"],
                serializer.validated_data["review_comment"],
            )
        except NeedRequestError as exc:
            return Response({"error": str(exc)}, status=400)

        return Response({"data": NeedRequestSerializer(need).data}, status=200)


class NeedRequestPdfView(APIView):
    """
    GET /api/v1/procurement/needs/<id>/pdf?download=1
    """
    permission_classes = [IsAuthenticated, RoleRequired]

    def get(self, request, pk):
        need = NeedRequest.objects.select_related("requester", "reviewed_by").filter(pk=pk).first()
        if not need:
            return Response({"error": "État de besoin introuvable."}, status=404)

        content = render_need_request_pdf(need, printed_by=request.user)
        disposition = "attachment" if request.GET.get("download") == "1" else "inline"
        response = HttpResponse(content, content_type="application/pdf")
        response["Content-Disposition"] = f'{disposition}; filename="etat-besoin-{need.id}.pdf"'
        response["Cache-Control"] = "no-store"
        return response


class StockItemListView(APIView):
    """
    GET /api/v1/procurement/stock/items   items with their latest movements
    """
    permission_classes = [IsAuthenticated, RoleRequired]

    def get(self, request):
        movements = StockMovement.objects.select_related("performed_by", "need_request", "stock_item").order_by(
            "-created_at", "-id"
        )
        items = StockItem.objects.prefetch_related(Prefetch("movements", queryset=movements)).order_by(
            "category", "name"
        )[:ITEM_LIST_LIMIT]
        serializer = StockItemSerializer(items, many=True, context={"movement_limit": ITEM_MOVEMENT_LIMIT})
        return Response({"data": serializer.data}, status=200)


class StockMovementListCreateView(APIView):
    """
    GET  /api/v1/procurement/stock/movements
    POST /api/v1/procurement/stock/movements
         { item_name, category, unit, movement_type, quantity, justification, reference_doc?, need_request_id? }
    """
    permission_classes = [IsAuthenticated, RoleRequired]

    def get(self, request):
        movements = StockMovement.objects.select_related(
            "stock_item", "performed_by", "need_request"
        ).order_by("-created_at", "-id")[:MOVEMENT_LIST_LIMIT]
        return Response({"data": StockMovementSerializer(movements, many=True).data}, status=200)

    def post(self, request):
        if _employee_outside_procurement(request):
            return Response(
                {"error": "Seul le service approvisionnement peut gérer la fiche stock."}, status=403
            )

        serializer = StockMovementCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": serializer.errors}, status=400)

        data = serializer.validated_data
        try:
            result = post_stock_movement(
                (data["item_name"], data["category"], data["unit"]),
                data["movement_type"],
                data["quantity"],
                justification=data["justification"],
                reference_doc=data["reference_doc"],
                performed_by=request.user,
                need_request_id=data.get("need_request_id"),
            )
        except NeedRequestNotFound as exc:
            return Response({"error": str(exc)}, status=404)
        except StockMovementError as exc:
            return Response({"error": str(exc)}, status=400)

        return Response({
            "data": {
                "item": {
                    "id": result.item.id,
                    "name": result.item.name,
                    "category": result.item.category,
                    "unit": result.item.unit,
                    "current_quantity": result.item.current_quantity,
                },
                "movement": StockMovementSerializer(result.movement).data,
            }
        }, status=201)
