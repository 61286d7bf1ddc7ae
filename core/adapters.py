"""
core/adapters.py -- One read-only query unit per backend system.

Every adapter honours the same contract:

    fetch(person) -> (PartialProfile | None, ok)

ok=False means the source was unavailable (timeout, transport error,
malformed payload, database error, missing configuration). The failure is
logged here and goes no further. ok=True with no fields means the source
answered and simply has nothing for this person.

Adapters hold no mutable state of their own; the credential adapter shares
the process-wide TokenCache, which does its own locking.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.errors import AuthFailure, SourceUnavailable
from core.fetcher import fetch_contact, search_credential_users
from core.models import ContactInfo, CredentialStatus, EmploymentInfo, PartialProfile, PersonRecord
from core.names import generate_name_variants, pick_first_match

if TYPE_CHECKING:
    from cache.token import TokenCache
    from core.config import Settings
    from records.store import RecordsStore

logger = logging.getLogger("vetdir.adapters")


class SourceAdapter:
    """Base class: subclasses implement _query() and let errors propagate to fetch()."""

    name: str = ""

    def fetch(self, person: PersonRecord) -> tuple[Optional[PartialProfile], bool]:
        try:
            fields = self._query(person)
        except SourceUnavailable as e:
            logger.warning("%s source unavailable for %s: %s", self.name, person.keys.global_id, e.reason)
            return None, False
        except SQLAlchemyError as e:
            logger.warning("%s query failed for %s: %s", self.name, person.keys.global_id, e)
            return None, False
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("%s returned a malformed record for %s: %r", self.name, person.keys.global_id, e)
            return None, False
        return PartialProfile(source=self.name, fields=fields), True

    def _query(self, person: PersonRecord) -> dict[str, Any]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Directory / contact
# ---------------------------------------------------------------------------


class ContactAdapter(SourceAdapter):
    name = "contact"

    def __init__(self, base_url: str, timeout: float) -> None:
        self._base_url = base_url
        self._timeout = timeout

    def _query(self, person: PersonRecord) -> dict[str, Any]:
        if not self._base_url:
            raise SourceUnavailable(self.name, "contact directory is not configured")
        login_name = person.keys.login_name
        if not login_name:
            return {}
        entry = fetch_contact(self._base_url, login_name, self._timeout)
        if entry is None:
            return {}
        contact = _contact_from_entry(entry)
        return {"contact": contact, "display_name": contact.display_name}


def _contact_from_entry(entry: dict[str, Any]) -> ContactInfo:
    postal = _opt_str(entry.get("postalAddress"))
    return ContactInfo(
        display_name=_opt_str(entry.get("displayName")),
        title=_opt_str(entry.get("title")),
        email=_opt_str(entry.get("mail")),
        phone=_opt_str(entry.get("telephoneNumber")),
        mobile=_opt_str(entry.get("mobile")),
        # directory stores address lines separated by "$"
        postal_address=postal.replace("$", "\n") if postal else None,
        department=_opt_str(entry.get("ou")),
        pager=_opt_str(entry.get("pager")),
    )


# ---------------------------------------------------------------------------
# Position / HR
# ---------------------------------------------------------------------------


class PositionAdapter(SourceAdapter):
    name = "position"

    def __init__(self, records: "RecordsStore") -> None:
        self._records = records

    def _query(self, person: PersonRecord) -> dict[str, Any]:
        employee_number = person.keys.employee_number
        student_number = person.keys.student_number
        if not employee_number and not student_number:
            return {}

        term_codes = self._records.get_current_terms()
        employee = self._records.get_current_employee(employee_number, term_codes) if employee_number else None
        is_student = (
            self._records.is_current_vet_student(student_number, term_codes) if student_number else False
        )

        info = EmploymentInfo(is_employee=employee is not None, is_student=is_student)
        if employee is not None:
            info = replace(
                info,
                primary_title=employee["primary_title"],
                school_division=employee["school_division"],
                employee_status=employee["status"],
                term_code=employee["term_code"],
                home_department=employee["home_dept"],
                effort_home_department=employee["effort_home_dept"],
                teaching_home_department=employee["teaching_home_dept"],
                teaching_percent_fulltime=employee["teaching_percent_fulltime"],
            )

        if employee_number:
            info = replace(info, flags=tuple(self._records.get_hr_flags(employee_number)))
            position = self._records.get_latest_position(employee_number)
            if position is not None:
                info = _with_position(info, position, self._reports_to(position))

        return {"employment": info}

    def _reports_to(self, position: dict[str, Any]) -> Optional[dict[str, Any]]:
        if not position["reports_to"]:
            return None
        return self._records.get_position_holder(position["reports_to"])


def _with_position(
    info: EmploymentInfo, position: dict[str, Any], supervisor: Optional[dict[str, Any]]
) -> EmploymentInfo:
    reports_to_name = None
    reports_to_position = None
    if supervisor is not None:
        reports_to_name = f"{supervisor['first_name'] or ''} {supervisor['last_name'] or ''}".strip() or None
        reports_to_position = supervisor["job_code_desc"]
    return replace(
        info,
        job_code=position["job_code"],
        job_description=position["job_code_desc"],
        department_id=position["dept_id"],
        department_description=position["dept_desc"],
        job_status=position["job_status"],
        job_status_description=position["job_status_desc"],
        position_employee_status=position["employee_status"],
        position_effective_date=position["position_effective_date"],
        expected_end_date=position["expected_end_date"],
        fte=position["fte"],
        union_code=position["union_code"],
        reports_to_name=reports_to_name,
        reports_to_position=reports_to_position,
    )


# ---------------------------------------------------------------------------
# Badge / key / loan registries
# ---------------------------------------------------------------------------


class BadgeAdapter(SourceAdapter):
    name = "badge"

    def __init__(self, records: "RecordsStore") -> None:
        self._records = records

    def _query(self, person: PersonRecord) -> dict[str, Any]:
        if not person.keys.login_name:
            return {}
        return {"badges": tuple(self._records.list_badges(person.keys.login_name))}


class KeyAdapter(SourceAdapter):
    name = "key"

    def __init__(self, records: "RecordsStore") -> None:
        self._records = records

    def _query(self, person: PersonRecord) -> dict[str, Any]:
        if not person.keys.legacy_id:
            return {}
        assignments = self._records.list_key_assignments(person.keys.legacy_id)

        issuer_names: dict[str, Optional[str]] = {}
        resolved = []
        for assignment in assignments:
            issuer_id = assignment.issued_by
            if issuer_id and issuer_id not in issuer_names:
                issuer_names[issuer_id] = self._records.get_display_name(issuer_id)
            resolved.append(replace(assignment, issued_by=issuer_names.get(issuer_id) if issuer_id else None))
        return {"keys": tuple(resolved)}


class LoanAdapter(SourceAdapter):
    name = "loan"

    def __init__(self, records: "RecordsStore") -> None:
        self._records = records

    def _query(self, person: PersonRecord) -> dict[str, Any]:
        if not person.keys.student_number:
            return {}
        return {"loans": tuple(self._records.list_loan_items(person.keys.student_number))}


# ---------------------------------------------------------------------------
# Third-party credentialing platform
# ---------------------------------------------------------------------------


class CredentialAdapter(SourceAdapter):
    """Find the person's platform account by last-name search + first-name variants."""

    name = "credential"

    def __init__(self, token_cache: "TokenCache", api_url: str, timeout: float) -> None:
        self._token_cache = token_cache
        self._api_url = api_url
        self._timeout = timeout

    def _query(self, person: PersonRecord) -> dict[str, Any]:
        if not self._api_url:
            raise SourceUnavailable(self.name, "credentialing platform is not configured")
        if not person.first_name or not person.last_name:
            return {}

        token = self._token_cache.get_token()
        if token is None:
            raise AuthFailure(self.name, "no bearer token available")

        try:
            candidates = search_credential_users(self._api_url, token, person.last_name, self._timeout)
        except AuthFailure:
            self._token_cache.invalidate()
            raise

        variants = generate_name_variants(person.first_name, person.middle_name)
        match = pick_first_match(candidates, variants)
        if match is None:
            logger.info(
                "No platform account among %d candidate(s) for %s (variants=%s)",
                len(candidates),
                person.keys.global_id,
                variants,
            )
            return {}
        return {"credential": _credential_from_user(match)}


def _credential_from_user(user: dict[str, Any]) -> CredentialStatus:
    roles = user.get("roles") or []
    return CredentialStatus(
        platform_id=_opt_str(user.get("id")),
        instinct_id=_opt_str(user.get("instinctId")),
        username=_opt_str(user.get("username")),
        initials=_opt_str(user.get("initials")),
        status=_opt_str(user.get("status")),
        is_active=bool(user.get("isActive")),
        is_protected=bool(user.get("isProtected")),
        password_expires_at=_parse_timestamp(user.get("passwordExpiresAt")),
        roles=tuple(r["label"] for r in roles if isinstance(r, dict) and r.get("label")),
    )


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 timestamp or None. Unparseable values are dropped, not errors."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def build_adapters(settings: "Settings", records: "RecordsStore", token_cache: "TokenCache") -> list[SourceAdapter]:
    """The six production adapters, in merge-priority order after the person record."""
    # Without a service account the platform cannot issue tokens.
    credential_api_url = settings.credential_api_url if settings.credentials_configured else ""
    return [
        ContactAdapter(settings.contact_directory_url, timeout=settings.http_timeout_seconds),
        PositionAdapter(records),
        BadgeAdapter(records),
        KeyAdapter(records),
        LoanAdapter(records),
        CredentialAdapter(token_cache, credential_api_url, timeout=settings.http_timeout_seconds),
    ]
