"""
auth/dependencies.py -- FastAPI Depends() helpers for authorization.

get_capabilities() asks the oracle on app.state for the request's capability
set. require_capability(name) builds a dependency that raises HTTP 401 when
the request carries no capabilities at all and HTTP 403 when it carries some
but not the one required.

Layer rule: no imports from core/, records/, or cache/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, Request


def get_capabilities(request: Request) -> frozenset[str]:
    """Return the capabilities granted to this request (possibly empty)."""
    oracle = request.app.state.capability_oracle
    return oracle.capabilities_for(request)


def require_capability(name: str) -> Callable[..., frozenset[str]]:
    """Dependency factory. The dependency returns the full capability set on success.

    Use as a FastAPI dependency:
        @router.get("/profile")
        async def route(caps: frozenset[str] = Depends(require_capability("directory.view"))): ...
    """

    def _require(capabilities: frozenset[str] = Depends(get_capabilities)) -> frozenset[str]:
        if not capabilities:
            raise HTTPException(
                status_code=401,
                detail={"code": "unauthorized", "message": "Authentication required."},
            )
        if name not in capabilities:
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": f"Capability '{name}' required."},
            )
        return capabilities

    return _require
