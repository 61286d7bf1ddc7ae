from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Optional

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IdentityKeySet:
    """Every key a backend system may know a person by."""

    global_id: Optional[str] = None  # primary cross-system identifier
    legacy_id: Optional[str] = None  # pre-global-id identifier, key registry assignee
    login_name: Optional[str] = None  # contact directory and badge key
    employee_number: Optional[str] = None  # HR/position key
    student_number: Optional[str] = None  # student records and loan registry key


@dataclass(frozen=True)
class PersonRecord:
    """Canonical person row from the system of record (basic identity section)."""

    keys: IdentityKeySet
    first_name: str = ""
    middle_name: Optional[str] = None
    last_name: str = ""
    display_first_name: Optional[str] = None
    display_last_name: Optional[str] = None
    display_full_name: Optional[str] = None
    mail_id: Optional[str] = None
    current_affiliate: bool = False


@dataclass(frozen=True)
class ResolvedIdentity:
    """Resolver output. person is None exactly when is_valid is False."""

    person: Optional[PersonRecord] = None

    @property
    def is_valid(self) -> bool:
        return self.person is not None

    @property
    def keys(self) -> IdentityKeySet:
        return self.person.keys if self.person is not None else IdentityKeySet()


# ---------------------------------------------------------------------------
# Profile sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContactInfo:
    display_name: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    postal_address: Optional[str] = None
    department: Optional[str] = None
    pager: Optional[str] = None


@dataclass(frozen=True)
class EmploymentInfo:
    """Current-term affiliation, HR flags, and latest position."""

    is_employee: bool = False
    is_student: bool = False
    # current-term employee record
    primary_title: Optional[str] = None
    school_division: Optional[str] = None
    employee_status: Optional[str] = None
    term_code: Optional[str] = None
    home_department: Optional[str] = None
    effort_home_department: Optional[str] = None
    teaching_home_department: Optional[str] = None
    teaching_percent_fulltime: Optional[float] = None
    # HR affiliation flags, labels in declaration order
    flags: tuple[str, ...] = ()
    # latest position by effective date
    job_code: Optional[str] = None
    job_description: Optional[str] = None
    department_id: Optional[str] = None
    department_description: Optional[str] = None
    job_status: Optional[str] = None
    job_status_description: Optional[str] = None
    position_employee_status: Optional[str] = None
    position_effective_date: Optional[date] = None
    expected_end_date: Optional[date] = None
    fte: Optional[float] = None
    union_code: Optional[str] = None
    reports_to_name: Optional[str] = None
    reports_to_position: Optional[str] = None


@dataclass(frozen=True)
class BadgeRecord:
    number: Optional[str] = None
    display_name: Optional[str] = None
    last_name: Optional[str] = None
    line2: Optional[str] = None
    status: str = ""
    applied_date: Optional[datetime] = None
    issued_date: Optional[datetime] = None
    deactivated_date: Optional[datetime] = None
    deactivated_reason: str = ""


@dataclass(frozen=True)
class KeyAssignment:
    key_number: Optional[str] = None
    access_description: Optional[str] = None
    cut_number: Optional[str] = None
    issued_date: Optional[datetime] = None
    issued_by: Optional[str] = None


@dataclass(frozen=True)
class LoanItem:
    asset_name: Optional[str] = None
    loan_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    comments: Optional[str] = None


@dataclass(frozen=True)
class CredentialStatus:
    """Account on the third-party credentialing platform, matched by name."""

    platform_id: Optional[str] = None
    instinct_id: Optional[str] = None
    username: Optional[str] = None
    initials: Optional[str] = None
    status: Optional[str] = None
    is_active: bool = False
    is_protected: bool = False
    password_expires_at: Optional[datetime] = None
    roles: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PartialProfile:
    """Fields one source contributes to the profile, keyed by UnifiedProfile field name."""

    source: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SourceOutcome:
    source: str
    ok: bool
    error: Optional[str] = None  # "timeout" | "unavailable" | "error"
    elapsed_ms: float = 0.0


@dataclass(frozen=True)
class UnifiedProfile:
    person: PersonRecord
    display_name: Optional[str] = None
    contact: Optional[ContactInfo] = None
    employment: Optional[EmploymentInfo] = None
    badges: tuple[BadgeRecord, ...] = ()
    keys: tuple[KeyAssignment, ...] = ()
    loans: tuple[LoanItem, ...] = ()
    credential: Optional[CredentialStatus] = None
    sources: tuple[SourceOutcome, ...] = ()

    @property
    def unavailable_sources(self) -> list[str]:
        return [o.source for o in self.sources if not o.ok]
