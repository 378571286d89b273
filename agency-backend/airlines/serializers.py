# airlines/serializers.py
from decimal import Decimal

from rest_framework import serializers

from .models import Airline, CommissionRule


class CommissionRuleSerializer(serializers.ModelSerializer):
    class Meta:
        model = CommissionRule
        fields = [
            "id",
            "route_pattern",
            "travel_class",
            "commission_mode",
            "rate_percent",
            "system_rate_percent",
            "markup_rate_percent",
            "default_base_fare_ratio",
            "deposit_stock_target_amount",
            "deposit_stock_consumed_amount",
            "batch_commission_amount",
            "starts_at",
            "ends_at",
            "is_active",
        ]
        read_only_fields = fields


class AirlineSerializer(serializers.ModelSerializer):
    commission_rules = serializers.SerializerMethodField()

    class Meta:
        model = Airline
        fields = ["id", "code", "name", "commission_rules", "created_at", "updated_at"]

    def get_commission_rules(self, obj):
        rules = [r for r in obj.commission_rules.all() if r.is_active]
        return CommissionRuleSerializer(rules, many=True).data


class AirlineCreateSerializer(serializers.Serializer):
    code = serializers.CharField(min_length=2, max_length=4)
    name = serializers.CharField(min_length=2, max_length=120)
    rate_percent = serializers.DecimalField(
        max_digits=7, decimal_places=3, min_value=Decimal("0"), max_value=Decimal("100")
    )

    def validate_code(self, value):
        code = value.strip().upper()
        if Airline.objects.filter(code=code).exists():
            raise serializers.ValidationError("Une compagnie avec ce code existe déjà.")
        return code
