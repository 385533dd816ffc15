"""Subscription renewal and upgrade endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from fitclub.core.deps import get_db
from fitclub.db.models import MemberSubscription
from fitclub.schemas.subscription import (
    InvoiceRead, ProrationRead, RenewRequest, RenewResponse, SubscriptionRead,
    TransitionRead, UpgradeRequest, UpgradeResponse,
)
from fitclub.services import reference_data_service, subscription_service
from fitclub.services.subscription_service import PlanNotFoundError, SubscriptionServiceError


router = APIRouter(prefix="/members", tags=["subscriptions"])


def _get_subscription_or_404(db: Session, member_id: int, subscription_id: int) -> MemberSubscription:
    subscription = db.query(MemberSubscription).filter(
        MemberSubscription.id == subscription_id,
        MemberSubscription.member_id == member_id,
    ).first()
    if not subscription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found")
    return subscription


def _http_error(error: SubscriptionServiceError) -> HTTPException:
    if isinstance(error, PlanNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


@router.post(
    "/{member_id}/subscriptions/{subscription_id}/renew",
    response_model=RenewResponse,
)
def renew_member_subscription(
    member_id: int,
    subscription_id: int,
    data: RenewRequest,
    db: Session = Depends(get_db),
):
    """
    Renew a subscription in place and raise an invoice.

    The renewal type (new, expired, early, pre) is worked out from the
    subscription's status and end date.
    """
    subscription = _get_subscription_or_404(db, member_id, subscription_id)
    if not subscription_service.can_renew(subscription):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Subscription cannot be renewed (status: {subscription.status})",
        )

    plan = None
    if data.plan_id is not None:
        plan = reference_data_service.get_plan(db, data.plan_id)
        if not plan:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")

    try:
        outcome = subscription_service.renew_subscription(
            db, subscription, plan=plan, options=data.to_options()
        )
    except SubscriptionServiceError as e:
        raise _http_error(e) from e

    return RenewResponse(
        renewal_type=outcome.renewal_type,
        start_date=outcome.start_date,
        end_date=outcome.end_date,
        transition=TransitionRead.model_validate(outcome.transition),
        subscription=SubscriptionRead.model_validate(outcome.subscription),
        invoice=InvoiceRead.model_validate(outcome.invoice),
    )


@router.post(
    "/{member_id}/subscriptions/{subscription_id}/upgrade",
    response_model=UpgradeResponse,
)
def upgrade_member_subscription(
    member_id: int,
    subscription_id: int,
    data: UpgradeRequest,
    db: Session = Depends(get_db),
):
    """
    Upgrade to another plan starting today.

    Creates a new subscription, cancels the current one and raises an
    invoice that includes any proration for unused time.
    """
    subscription = _get_subscription_or_404(db, member_id, subscription_id)

    plan = reference_data_service.get_plan(db, data.plan_id)
    if not plan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")

    if not subscription_service.can_upgrade(subscription, plan):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subscription cannot be upgraded to this plan",
        )

    try:
        outcome = subscription_service.upgrade_subscription(
            db, subscription, plan, options=data.to_options(prorate=data.prorate)
        )
    except SubscriptionServiceError as e:
        raise _http_error(e) from e

    return UpgradeResponse(
        transition=TransitionRead.model_validate(outcome.transition),
        subscription=SubscriptionRead.model_validate(outcome.subscription),
        previous_subscription=SubscriptionRead.model_validate(outcome.previous_subscription),
        invoice=InvoiceRead.model_validate(outcome.invoice),
        proration=ProrationRead.model_validate(outcome.proration),
    )
