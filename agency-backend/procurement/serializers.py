# procurement/serializers.py
from decimal import Decimal

from rest_framework import serializers

from .models import MovementType, NeedRequest, NeedStatus, StockItem, StockMovement


def _user_brief(user):
    if user is None:
        return None
    return {"id": user.id, "name": user.get_full_name() or user.get_username()}


class NeedRequestSerializer(serializers.ModelSerializer):
    reference = serializers.CharField(read_only=True)
    requester = serializers.SerializerMethodField()
    reviewed_by = serializers.SerializerMethodField()

    class Meta:
        model = NeedRequest
        fields = [
            "id",
            "reference",
            "title",
            "category",
            "details",
            "quantity",
            "unit",
            "estimated_amount",
            "currency",
            "status",
            "requester",
            "reviewed_by",
            "review_comment",
            "submitted_at",
            "reviewed_at",
            "approved_at",
            "sealed_at",
            "created_at",
        ]
        read_only_fields = fields

    def get_requester(self, obj):
        return _user_brief(obj.requester)

    def get_reviewed_by(self, obj):
        return _user_brief(obj.reviewed_by)


class NeedRequestCreateSerializer(serializers.Serializer):
    title = serializers.CharField(min_length=3, max_length=160)
    category = serializers.CharField(min_length=2, max_length=80)
    details = serializers.CharField(required=False, allow_blank=True, default="")
    quantity = serializers.IntegerField(min_value=1)
    unit = serializers.CharField(min_length=1, max_length=32)
    estimated_amount = serializers.DecimalField(
        max_digits=14, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )
    currency = serializers.CharField(min_length=3, max_length=3, required=False, default="XAF")


class NeedReviewSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[NeedStatus.APPROVED, NeedStatus.REJECTED])
    review_comment = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class StockMovementSerializer(serializers.ModelSerializer):
    item_name = serializers.CharField(source="stock_item.name", read_only=True)
    performed_by = serializers.SerializerMethodField()
    need_request = serializers.SerializerMethodField()

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "stock_item",
            "item_name",
            "movement_type",
            "quantity",
            "justification",
            "reference_doc",
            "performed_by",
            "need_request",
            "created_at",
        ]
        read_only_fields = fields

    def get_performed_by(self, obj):
        return _user_brief(obj.performed_by)

    def get_need_request(self, obj):
        need = obj.need_request
        if need is None:
            return None
        return {"id": need.id, "title": need.title, "status": need.status}


class StockItemSerializer(serializers.ModelSerializer):
    movements = serializers.SerializerMethodField()

    class Meta:
        model = StockItem
        fields = ["id", "name", "category", "unit", "current_quantity", "movements", "updated_at"]
        read_only_fields = fields

    def get_movements(self, obj):
        # prefetched by the view, newest first
        limit = self.context.get("movement_limit", 25)
        return StockMovementSerializer(list(obj.movements.all())[:limit], many=True).data


class StockMovementCreateSerializer(serializers.Serializer):
    item_name = serializers.CharField(min_length=2, max_length=120)
    category = serializers.CharField(min_length=2, max_length=80)
    unit = serializers.CharField(min_length=1, max_length=32)
    movement_type = serializers.ChoiceField(choices=MovementType.choices)
    quantity = serializers.IntegerField(min_value=1)
    justification = serializers.CharField(min_length=3, max_length=255)
    reference_doc = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    need_request_id = serializers.IntegerField(required=False, allow_null=True)
