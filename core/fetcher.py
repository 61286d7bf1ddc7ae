"""
fetcher.py -- All outbound HTTP to the non-relational backend systems.

  contact directory      -- campus contact attributes keyed by login name
  credentialing platform -- OAuth password-grant token endpoint + GraphQL API

Every helper carries an explicit timeout. Transport errors, non-success
statuses, and malformed JSON are raised as SourceUnavailable (AuthFailure for
the token endpoint); "no such person" is a normal None / empty-list return.
Catching is the adapters' job, not this module's.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import requests

from core.errors import AuthFailure, SourceUnavailable

logger = logging.getLogger("vetdir.fetcher")

# Module-level session shared across all fetcher calls for connection pooling.
# max_redirects=3 replaces the requests default of 30 -- these are known
# internal and vendor endpoints.
_session = requests.Session()
_session.max_redirects = 3

SEARCH_USERS_QUERY = """
query SearchUsers($name: String!) {
    searchUsers(name: $name) {
        id
        initials
        instinctId
        isActive
        isProtected
        nameFirst
        nameMiddle
        nameLast
        passwordExpiresAt
        status
        username
        roles {
            description
            label
        }
    }
}
"""


def fetch_contact(base_url: str, login_name: str, timeout: float) -> Optional[dict[str, Any]]:
    """Fetch one contact directory entry. Returns None when the directory has no entry."""
    url = f"{base_url.rstrip('/')}/people/{quote(login_name, safe='')}"
    try:
        resp = _session.get(url, timeout=timeout)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        payload = resp.json()
    except requests.RequestException as e:
        raise SourceUnavailable("contact", str(e)) from e
    except ValueError as e:
        raise SourceUnavailable("contact", "response is not JSON") from e
    if not isinstance(payload, dict):
        raise SourceUnavailable("contact", "expected a JSON object")
    return payload


def request_token(token_url: str, username: str, password: str, scope: str, timeout: float) -> dict[str, Any]:
    """POST a resource-owner password grant and return the token response JSON.

    Expected shape: {"access_token", "expires_in", "token_type", "scope"}.
    """
    if not (token_url and username and password):
        raise AuthFailure("credential", "platform credentials are not configured")
    form = {
        "username": username,
        "password": password,
        "grant_type": "password",
        "scope": scope,
    }
    try:
        resp = _session.post(token_url, data=form, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    except requests.RequestException as e:
        # str(e) carries the URL and status, never the form body
        raise AuthFailure("credential", f"token request failed: {e}") from e
    except ValueError as e:
        raise AuthFailure("credential", "token response is not JSON") from e
    if not isinstance(payload, dict) or not payload.get("access_token"):
        raise AuthFailure("credential", "token response has no access_token")
    return payload


def search_credential_users(api_url: str, token: str, last_name: str, timeout: float) -> list[dict[str, Any]]:
    """Run the searchUsers GraphQL operation for a last name.

    Raises AuthFailure on 401 or 403 so the caller can drop its cached token.
    """
    headers = {"Authorization": f"Bearer {token}"}
    body = {"query": SEARCH_USERS_QUERY, "variables": {"name": last_name}}
    try:
        resp = _session.post(api_url, json=body, headers=headers, timeout=timeout)
        if resp.status_code in (401, 403):
            raise AuthFailure("credential", "bearer token rejected")
        resp.raise_for_status()
        payload = resp.json()
    except requests.RequestException as e:
        raise SourceUnavailable("credential", str(e)) from e
    except ValueError as e:
        raise SourceUnavailable("credential", "response is not JSON") from e

    data = payload.get("data") if isinstance(payload, dict) else None
    if data is None:
        errors = payload.get("errors") if isinstance(payload, dict) else None
        raise SourceUnavailable("credential", f"GraphQL returned no data: {errors!r:.200}")
    if not isinstance(data, dict):
        raise SourceUnavailable("credential", "data is not an object")
    users = data.get("searchUsers") or []
    if not isinstance(users, list):
        raise SourceUnavailable("credential", "searchUsers is not a list")
    return [u for u in users if isinstance(u, dict)]
