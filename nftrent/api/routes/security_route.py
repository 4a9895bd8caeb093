from typing import Dict, List

from fastapi import APIRouter, Depends, Query

from nftrent.api.dependencies import get_security_context, get_user
from nftrent.security.context import SecurityContext
from nftrent.security.monitor import SecurityEvent, SecurityEventType

router = APIRouter(prefix="/security", tags=["Security"])


@router.get(
    "/events",
    response_model=List[SecurityEvent],
    summary="Get recent security events",
    description=(
        "Most recent security events of the authenticated user, oldest first, "
        "optionally filtered by type."
    ),
)
async def get_security_events(
    *,
    type: SecurityEventType | None = None,
    limit: int = Query(50, ge=1, le=100),
    user: dict = Depends(get_user),
    security: SecurityContext = Depends(get_security_context),
):
    # events of other users are never exposed
    user_id = user["uid"]
    if type is not None:
        return security.event_log.query_by_type(type, limit, user_id=user_id)
    return security.event_log.query(limit, user_id=user_id)


@router.get(
    "/summary",
    response_model=Dict[str, int],
    summary="Count security events per type",
    description="Event counts of the authenticated user.",
)
async def get_security_summary(
    *,
    user: dict = Depends(get_user),
    security: SecurityContext = Depends(get_security_context),
):
    return security.event_log.counts(user_id=user["uid"])
