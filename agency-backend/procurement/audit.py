# procurement/audit.py
"""
Audit logging for procurement operations.
"""
from common.models import AuditLog


def log_stock_movement(user, item, movement):
    AuditLog.record(
        user=user,
        action=f"STOCK_{movement.movement_type}",
        severity="info",
        metadata={
            "stock_item_id": item.id,
            "movement_id": movement.id,
            "quantity": movement.quantity,
            "resulting_quantity": item.current_quantity,
            "need_request_id": movement.need_request_id,
            "reference_doc": movement.reference_doc,
        },
    )


def log_stock_rejection(user, item_key, direction, quantity, reason):
    AuditLog.record(
        user=user,
        action="STOCK_MOVEMENT_REJECTED",
        severity="warning",
        metadata={
            "item": list(item_key),
            "direction": direction,
            "quantity": quantity,
            "reason": reason,
        },
    )


def log_need_action(user, need, action, metadata=None):
    """action: submit, approve, reject"""
    AuditLog.record(
        user=user,
        action=f"NEED_{action.upper()}",
        severity="info",
        metadata={
            "need_request_id": need.id,
            "reference": need.reference,
            "status": need.status,
            **(metadata or {}),
        },
    )


def log_stock_reconciliation(user, corrected):
    AuditLog.record(
        user=user,
        action="STOCK_RECONCILE",
        severity="warning" if corrected else "info",
        metadata={"corrected_items": corrected},
    )
