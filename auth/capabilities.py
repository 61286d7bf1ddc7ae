"""
auth/capabilities.py -- Capability oracle: which directory capabilities does a request hold?

The oracle is an injected collaborator (app.state.capability_oracle) so a
deployment can swap the header reader for something else without touching
routes. HeaderCapabilityOracle trusts a header set by the authenticating
gateway, so the API must only be reachable through that gateway.

Capability names:
  directory.view    -- may look up profiles
  directory.detail  -- may also see identifier keys (global/legacy id,
                       employee and student numbers)
"""

from typing import Protocol

from starlette.requests import Request

VIEW = "directory.view"
DETAIL = "directory.detail"


class CapabilityOracle(Protocol):
    def capabilities_for(self, request: Request) -> frozenset[str]: ...


class HeaderCapabilityOracle:
    """Read a comma-separated capability list from one request header."""

    def __init__(self, header_name: str = "X-Capabilities") -> None:
        self.header_name = header_name

    def capabilities_for(self, request: Request) -> frozenset[str]:
        raw = request.headers.get(self.header_name, "")
        return frozenset(part.strip().lower() for part in raw.split(",") if part.strip())
