# airlines/api.py
from django.db import transaction
from django.db.models import Prefetch
from django.utils import timezone
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.models import AuditLog
from common.permissions import RoleRequired
from common.roles import AgencyRole
from .models import Airline, CommissionRule
from .serializers import AirlineCreateSerializer, AirlineSerializer


class AirlineListCreateView(APIView):
    """
    GET  /api/v1/airlines/
    POST /api/v1/airlines/  { code, name, rate_percent }
    """
    permission_classes = [IsAuthenticated, RoleRequired]
    permission_roles = {"POST": [AgencyRole.ADMIN]}

    def get(self, request):
        airlines = Airline.objects.prefetch_related(
            Prefetch("commission_rules", queryset=CommissionRule.objects.filter(is_active=True))
        ).order_by("name")
        return Response({"data": AirlineSerializer(airlines, many=True).data}, status=200)

    def post(self, request):
        serializer = AirlineCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": serializer.errors}, status=400)

        data = serializer.validated_data
        with transaction.atomic():
            airline = Airline.objects.create(code=data["code"], name=data["name"])
            CommissionRule.objects.create(
                airline=airline,
                rate_percent=data["rate_percent"],
                starts_at=timezone.now(),
                is_active=True,
            )

        AuditLog.record(
            action="AIRLINE_CREATE",
            user=request.user,
            metadata={"airline_id": airline.id, "code": airline.code},
        )
        return Response({"data": AirlineSerializer(airline).data}, status=201)
