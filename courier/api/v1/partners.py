"""
Partner profile API endpoints.

Partners read and edit their own profile, switch themselves online or
offline and read their earnings summary. Any signed-in user can look up a
partner's public profile, and customers rate the partner of a delivered
order.
"""

from uuid import UUID

from fastapi import APIRouter, status

from courier.api.deps import CurrentActor, CustomerActor, PartnerActor, PartnerServiceDep
from courier.core.logging import get_logger
from courier.schemas.partners import (
    EarningsSummaryResponse,
    OnlineStatusRequest,
    PartnerProfileResponse,
    PartnerProfileUpdateRequest,
    RatingRequest,
    RatingResponse,
)

logger = get_logger(__name__)

router = APIRouter(tags=["partners"])


@router.get("/partners/me", response_model=PartnerProfileResponse, summary="Get my profile")
async def get_my_profile(
    actor: PartnerActor, service: PartnerServiceDep
) -> PartnerProfileResponse:
    profile = await service.get_profile(actor)
    return PartnerProfileResponse.model_validate(profile)


@router.patch(
    "/partners/me",
    response_model=PartnerProfileResponse,
    summary="Update my vehicle details",
)
async def update_my_profile(
    payload: PartnerProfileUpdateRequest,
    actor: PartnerActor,
    service: PartnerServiceDep,
) -> PartnerProfileResponse:
    profile = await service.update_profile(
        actor,
        vehicle_type=payload.vehicle_type,
        vehicle_registration=payload.vehicle_registration,
    )
    return PartnerProfileResponse.model_validate(profile)


@router.patch(
    "/partners/me/status",
    response_model=PartnerProfileResponse,
    summary="Go online or offline",
)
async def set_online_status(
    payload: OnlineStatusRequest,
    actor: PartnerActor,
    service: PartnerServiceDep,
) -> PartnerProfileResponse:
    profile = await service.set_online_status(actor, payload.is_online)
    return PartnerProfileResponse.model_validate(profile)


@router.get(
    "/partners/me/earnings",
    response_model=EarningsSummaryResponse,
    summary="Get my earnings summary",
)
async def get_my_earnings(
    actor: PartnerActor, service: PartnerServiceDep
) -> EarningsSummaryResponse:
    summary = await service.get_earnings_summary(actor)
    return EarningsSummaryResponse.model_validate(summary)


@router.get(
    "/partners/{partner_id}",
    response_model=PartnerProfileResponse,
    summary="Get a partner's public profile",
)
async def get_partner_profile(
    partner_id: UUID,
    actor: CurrentActor,
    service: PartnerServiceDep,
) -> PartnerProfileResponse:
    profile = await service.get_public_profile(partner_id)
    return PartnerProfileResponse.model_validate(profile)


@router.post(
    "/orders/{order_id}/rating",
    response_model=RatingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Rate the partner of a delivered order",
)
async def rate_order(
    order_id: UUID,
    payload: RatingRequest,
    actor: CustomerActor,
    service: PartnerServiceDep,
) -> RatingResponse:
    rating = await service.rate_order(actor, order_id, payload.rating, payload.comment)
    return RatingResponse.model_validate(rating)
