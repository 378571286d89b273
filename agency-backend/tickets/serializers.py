# tickets/serializers.py
from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework import serializers

from airlines.choices import TravelClass
from airlines.models import Airline
from .models import Payment, PaymentMethod, PaymentStatus, TicketSale

User = get_user_model()

MONEY = dict(max_digits=14, decimal_places=2)


class TicketSaleSerializer(serializers.ModelSerializer):
    airline_code = serializers.CharField(source="airline.code", read_only=True)
    airline_name = serializers.CharField(source="airline.name", read_only=True)
    seller_name = serializers.SerializerMethodField()

    class Meta:
        model = TicketSale
        fields = [
            "id",
            "ticket_number",
            "customer_name",
            "route",
            "travel_class",
            "travel_date",
            "sold_at",
            "amount",
            "currency",
            "base_fare_amount",
            "agency_markup_amount",
            "airline",
            "airline_code",
            "airline_name",
            "seller",
            "seller_name",
            "payment_status",
            "notes",
            "commission_rule",
            "commission_rate_used",
            "commission_amount",
            "commission_mode_applied",
            "commission_base_amount",
            "commission_calculation_status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_seller_name(self, obj):
        return obj.seller.get_full_name() or obj.seller.get_username()


class TicketWriteSerializer(serializers.Serializer):
    """
    Client-authored ticket fields. Commission fields are not accepted here;
    use partial=True for PATCH.
    """
    ticket_number = serializers.CharField(min_length=3, max_length=40)
    customer_name = serializers.CharField(min_length=2, max_length=160)
    route = serializers.CharField(min_length=3, max_length=64)
    travel_class = serializers.ChoiceField(choices=TravelClass.choices, default=TravelClass.ECONOMY)
    travel_date = serializers.DateTimeField()
    sold_at = serializers.DateTimeField(required=False)
    amount = serializers.DecimalField(min_value=Decimal("0.01"), **MONEY)
    base_fare_amount = serializers.DecimalField(min_value=Decimal("0"), required=False, allow_null=True, **MONEY)
    agency_markup_amount = serializers.DecimalField(min_value=Decimal("0"), required=False, allow_null=True, **MONEY)
    airline = serializers.PrimaryKeyRelatedField(queryset=Airline.objects.all())
    seller = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), required=False)
    payment_status = serializers.ChoiceField(choices=PaymentStatus.choices, default=PaymentStatus.UNPAID)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate_route(self, value):
        return value.strip().upper()

    def validate_ticket_number(self, value):
        value = value.strip()
        qs = TicketSale.objects.filter(ticket_number=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("Ce numéro de billet existe déjà.")
        return value


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ["id", "ticket", "amount", "method", "reference", "paid_at", "recorded_by", "created_at"]
        read_only_fields = fields


class PaymentCreateSerializer(serializers.Serializer):
    ticket_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(min_value=Decimal("0.01"), **MONEY)
    method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    reference = serializers.CharField(max_length=80, required=False, allow_blank=True)
    paid_at = serializers.DateTimeField(required=False)
