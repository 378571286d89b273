# procurement/ledger.py
"""
Stock ledger: IN/OUT movements against stock items.

An item's current_quantity is the running balance of its movements and never
goes negative. Posting locks the item row so the read-check-write of the
balance is serialized per item.
"""
import logging
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterable, NamedTuple

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Sum

from .audit import log_stock_movement, log_stock_rejection
from .models import MovementType, NeedRequest, NeedStatus, StockItem, StockMovement

logger = logging.getLogger(__name__)


class StockMovementError(Exception):
    """Base exception for stock movement operations"""
    pass


class NeedRequestNotFound(StockMovementError):
    def __init__(self, message="État de besoin lié introuvable."):
        super().__init__(message)


class RequestNotApproved(StockMovementError):
    """Raised when a movement references a need request that is not APPROVED"""

    def __init__(self, message="L'état de besoin doit être approuvé avant mouvement de stock."):
        super().__init__(message)


class ItemNotFound(StockMovementError):
    """Raised on an OUT movement for an item that has never been stocked"""

    def __init__(self, message="Impossible de sortir un produit absent de la fiche stock."):
        super().__init__(message)


class InsufficientStock(StockMovementError):
    """Raised when an OUT movement would take the balance below zero"""

    def __init__(self, available, requested):
        self.available = available
        self.requested = requested
        super().__init__("Stock insuffisant pour cette sortie.")


class PersistenceConflict(StockMovementError):
    """Raised when the database rejects the write; the movement is not retried"""

    def __init__(self, message="Erreur de mouvement de stock."):
        super().__init__(message)


class StockItemKey(NamedTuple):
    name: str
    category: str
    unit: str


@dataclass
class MovementResult:
    item: StockItem
    movement: StockMovement


@dataclass(frozen=True)
class StockTotals:
    in_qty: int
    out_qty: int
    resulting_quantity: int


def _normalize_key(item_key) -> StockItemKey:
    name, category, unit = item_key
    return StockItemKey(name.strip(), category.strip(), unit.strip())


def post_stock_movement(
    item_key,
    direction,
    quantity,
    *,
    justification,
    reference_doc="",
    performed_by,
    need_request_id=None,
) -> MovementResult:
    """
    Post one movement and update the item balance atomically.

    Args:
        item_key: (name, category, unit) of the stock item
        direction: "IN" or "OUT"
        quantity: positive integer
        need_request_id: optional originating need request; must be APPROVED

    Returns:
        MovementResult with the updated item and the created movement

    Raises:
        NeedRequestNotFound, RequestNotApproved, ItemNotFound,
        InsufficientStock, PersistenceConflict
        ValidationError: unknown direction or non-positive quantity
    """
    key = _normalize_key(item_key)
    if direction not in MovementType.values:
        raise ValidationError(f"Unknown movement type {direction!r}")

    try:
        with transaction.atomic():
            need = None
            if need_request_id is not None:
                need = NeedRequest.objects.select_for_update().filter(pk=need_request_id).first()
                if need is None:
                    raise NeedRequestNotFound()
                if need.status != NeedStatus.APPROVED:
                    raise RequestNotApproved()

            if quantity is None or quantity <= 0:
                raise ValidationError("Movement quantity must be greater than 0")

            item = (
                StockItem.objects.select_for_update()
                .filter(name=key.name, category=key.category, unit=key.unit)
                .first()
            )
            if item is None:
                if direction == MovementType.OUT:
                    raise ItemNotFound()
                item = StockItem.objects.create(
                    name=key.name, category=key.category, unit=key.unit, current_quantity=0
                )

            delta = quantity if direction == MovementType.IN else -quantity
            next_quantity = item.current_quantity + delta
            if next_quantity < 0:
                raise InsufficientStock(available=item.current_quantity, requested=quantity)

            item.current_quantity = next_quantity
            item.save(update_fields=["current_quantity", "updated_at"])

            movement = StockMovement.objects.create(
                stock_item=item,
                movement_type=direction,
                quantity=quantity,
                justification=justification,
                reference_doc=reference_doc or "",
                performed_by=performed_by,
                need_request=need,
            )
    except StockMovementError as exc:
        logger.warning("Stock movement rejected: %s %s %s (%s)", direction, quantity, key.name, exc)
        log_stock_rejection(performed_by, key, direction, quantity, type(exc).__name__)
        raise
    except DatabaseError as exc:
        logger.exception("Stock movement failed to persist: %s %s %s", direction, quantity, key.name)
        raise PersistenceConflict() from exc

    log_stock_movement(performed_by, item, movement)
    return MovementResult(item=item, movement=movement)


def _field(movement, name):
    if isinstance(movement, Mapping):
        return movement[name]
    return getattr(movement, name)


def reconcile_stock_totals(movements: Iterable) -> Dict[int, StockTotals]:
    """
    Recompute balances from a movement history. Accepts StockMovement
    instances or mappings with stock_item_id, movement_type and quantity.
    """
    sums = defaultdict(lambda: {MovementType.IN: 0, MovementType.OUT: 0})
    for movement in movements:
        sums[_field(movement, "stock_item_id")][_field(movement, "movement_type")] += _field(movement, "quantity")

    return {
        item_id: StockTotals(
            in_qty=qty[MovementType.IN],
            out_qty=qty[MovementType.OUT],
            resulting_quantity=max(0, qty[MovementType.IN] - qty[MovementType.OUT]),
        )
        for item_id, qty in sums.items()
    }


def stock_totals_from_db() -> Dict[int, StockTotals]:
    grouped = (
        StockMovement.objects.values("stock_item_id", "movement_type")
        .annotate(total=Sum("quantity"))
        .order_by()
    )
    return reconcile_stock_totals(
        {"stock_item_id": row["stock_item_id"], "movement_type": row["movement_type"], "quantity": row["total"] or 0}
        for row in grouped
    )


def apply_stock_reconciliation() -> Dict[int, StockTotals]:
    """
    Overwrite every item's balance with the value recomputed from its
    movements (0 for an item without movements). Returns the totals.
    """
    with transaction.atomic():
        items = list(StockItem.objects.select_for_update())
        totals = stock_totals_from_db()
        for item in items:
            expected = totals.setdefault(item.id, StockTotals(0, 0, 0)).resulting_quantity
            if item.current_quantity != expected:
                logger.warning(
                    "Stock item %s balance corrected: %s -> %s", item.id, item.current_quantity, expected
                )
                item.current_quantity = expected
                item.save(update_fields=["current_quantity", "updated_at"])
    return totals
