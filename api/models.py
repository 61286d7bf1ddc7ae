"""
API request and response models for VetDir REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: core/ models = domain truth; api/ models = API contract.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from core.formatter import to_dict
from core.models import SourceOutcome, UnifiedProfile

# Identifier keys withheld from callers without the detail capability.
REDACTED_KEYS = ("global_id", "legacy_id", "employee_number", "student_number")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SourceOutcomeRow(BaseModel):
    """How one backend source fared for this request."""

    model_config = ConfigDict(frozen=True)

    source: str
    ok: bool
    error: Optional[str] = None
    elapsed_ms: float

    @classmethod
    def from_outcome(cls, outcome: SourceOutcome) -> "SourceOutcomeRow":
        return cls(source=outcome.source, ok=outcome.ok, error=outcome.error, elapsed_ms=outcome.elapsed_ms)


class ProfileMeta(BaseModel):
    """Metadata envelope for a profile response."""

    model_config = ConfigDict(frozen=True)

    sources: list[SourceOutcomeRow]
    unavailable: list[str]
    identifiers_redacted: bool


class ProfileResponse(BaseModel):
    """Response body for GET /api/v1/profile.

    profile -- the UnifiedProfile as JSON (dates as ISO-8601 strings).
    meta    -- per-source outcomes so clients can tell "empty" from "unavailable".
    """

    model_config = ConfigDict(frozen=True)

    meta: ProfileMeta
    profile: dict[str, Any]

    @classmethod
    def from_profile(cls, profile: UnifiedProfile, include_identifiers: bool) -> "ProfileResponse":
        """Build the response from a core UnifiedProfile.

        When include_identifiers is False every key in REDACTED_KEYS is set
        to None in profile.person.keys. The login name stays; it is already
        public through the contact directory.
        """
        body = to_dict(profile)
        body.pop("sources", None)
        body.pop("unavailable_sources", None)
        if not include_identifiers:
            keys = body["person"]["keys"]
            for name in REDACTED_KEYS:
                keys[name] = None
        return cls(
            meta=ProfileMeta(
                sources=[SourceOutcomeRow.from_outcome(o) for o in profile.sources],
                unavailable=profile.unavailable_sources,
                identifiers_redacted=not include_identifiers,
            ),
            profile=body,
        )


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health.

    status is "healthy" when every component reports "ok", else "degraded".
    """

    model_config = ConfigDict(frozen=True)

    status: str
    version: str
    components: dict[str, str]
    sources: list[str] = []
