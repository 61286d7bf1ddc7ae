"""
api/routes/v1/profile.py -- Unified profile route handler for the VetDir REST API.

Rate limits are applied via slowapi. The @limiter.limit() decorator must sit
ABOVE @router.get so that slowapi can attach the limit string to the
function object before FastAPI wraps it. The limit is read from settings on
each check (see api/limiter.py).
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.limiter import limiter, profile_rate_limit
from api.models import ErrorDetail, ProfileResponse
from auth.capabilities import DETAIL, VIEW
from auth.dependencies import require_capability

router = APIRouter()

_ID_PATTERN = r"^[A-Za-z0-9_.\-]*$"


@limiter.limit(profile_rate_limit)
@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    request: Request,
    global_id: Annotated[Optional[str], Query(max_length=64, pattern=_ID_PATTERN)] = None,
    legacy_id: Annotated[Optional[str], Query(max_length=64, pattern=_ID_PATTERN)] = None,
    capabilities: frozenset[str] = Depends(require_capability(VIEW)),
) -> ProfileResponse:
    """Return the unified profile for one person.

    Query params:
        global_id -- primary cross-system identifier
        legacy_id -- tried when global_id is absent or does not resolve

    At least one is required. Sources that fail are listed in meta.unavailable;
    their sections are empty rather than the whole request failing.
    """
    if not (global_id or "").strip() and not (legacy_id or "").strip():
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(
                code="missing_identifier",
                message="Provide global_id, legacy_id, or both.",
            ).model_dump(),
        )

    profile = await request.app.state.aggregator.aggregate(global_id=global_id, legacy_id=legacy_id)
    if profile is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(
                code="person_not_found",
                message="No person matches the given identifier(s).",
            ).model_dump(),
        )

    return ProfileResponse.from_profile(profile, include_identifiers=DETAIL in capabilities)
