# procurement/needs.py
"""
Need request lifecycle: DRAFT -> SUBMITTED -> APPROVED | REJECTED.
"""
import logging

from django.db import transaction
from django.utils import timezone

from .audit import log_need_action
from .models import NeedRequest, NeedStatus

logger = logging.getLogger(__name__)

REVIEW_OUTCOMES = (NeedStatus.APPROVED, NeedStatus.REJECTED)

NEED_FIELDS = ("title", "category", "details", "quantity", "unit", "estimated_amount", "currency")


class NeedRequestError(Exception):
    """Base exception for need request operations"""
    pass


class InvalidNeedTransition(NeedRequestError):
    """Raised when a review targets a request that is not awaiting review"""
    pass


def submit_need_request(requester, **fields) -> NeedRequest:
    """Requests skip DRAFT: they are created already SUBMITTED."""
    data = {k: v for k, v in fields.items() if k in NEED_FIELDS}
    need = NeedRequest.objects.create(
        requester=requester,
        status=NeedStatus.SUBMITTED,
        submitted_at=timezone.now(),
        **data,
    )
    log_need_action(requester, need, "submit")
    return need


def review_need_request(need, reviewer, status, comment="") -> NeedRequest:
    """
    Approve or reject a SUBMITTED request. Approval stamps approved_at and
    sealed_at with the review time.

    Raises:
        InvalidNeedTransition: status is not APPROVED/REJECTED or the request
            is not SUBMITTED
    """
    if status not in REVIEW_OUTCOMES:
        raise InvalidNeedTransition(f"Statut de validation invalide: {status}")

    with transaction.atomic():
        need = NeedRequest.objects.select_for_update().get(pk=need.pk)
        if need.status != NeedStatus.SUBMITTED:
            raise InvalidNeedTransition(
                f"Seul un état de besoin soumis peut être validé (statut actuel: {need.status})."
            )

        now = timezone.now()
        approved = status == NeedStatus.APPROVED
        need.status = status
        need.reviewed_by = reviewer
        need.review_comment = comment or ""
        need.reviewed_at = now
        need.approved_at = now if approved else None
        need.sealed_at = now if approved else None
        need.save()

    logger.info("Need request %s %s by %s", need.reference, need.status, reviewer)
    log_need_action(reviewer, need, "approve" if approved else "reject", {"comment": need.review_comment})
    return need
