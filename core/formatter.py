"""
formatter.py -- Renders UnifiedProfile to terminal output or JSON.
"""

import json
import os
import re
import sys
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Optional

from .models import UnifiedProfile

W = 68  # output width

# ---------------------------------------------------------------------------
# ANSI color control
# ---------------------------------------------------------------------------

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from a string."""
    return _ANSI_RE.sub("", text)


def _use_color() -> bool:
    """Return True if stdout is a TTY and color has not been disabled.

    Respects NO_COLOR env var (https://no-color.org) and checks sys.stdout.isatty().
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


_color_enabled: Optional[bool] = None  # None = auto-detect


def disable_color() -> None:
    """Force-disable color output (called when --no-color flag is set)."""
    global _color_enabled
    _color_enabled = False


def _color_active() -> bool:
    if _color_enabled is not None:
        return _color_enabled
    return _use_color()


def _reset() -> str:
    return "\033[0m" if _color_active() else ""


def _bold() -> str:
    return "\033[1m" if _color_active() else ""


def _dim() -> str:
    return "\033[2m" if _color_active() else ""


def _red() -> str:
    return "\033[91m" if _color_active() else ""


def _green() -> str:
    return "\033[92m" if _color_active() else ""


# ---------------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------------


def _bar(char: str = "═") -> str:
    return char * W


def _section(title: str) -> str:
    bold = _bold()
    reset = _reset()
    return f"\n  {bold}{title}{reset}\n  {'─' * (W - 2)}"


def _fmt_date(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()
    return "-"


def _rows(pairs: list[tuple[str, Any]]) -> None:
    """Print label/value pairs, skipping empty values."""
    for label, val in pairs:
        if val is None or val == "":
            continue
        print(f"    {label:<22}  {val}")


def _unavailable_note(profile: UnifiedProfile, source: str) -> Optional[str]:
    if source in profile.unavailable_sources:
        return f"    {_red()}Source unavailable -- section may be incomplete{_reset()}"
    return None


# ---------------------------------------------------------------------------
# Terminal renderer
# ---------------------------------------------------------------------------


def print_terminal(profile: UnifiedProfile) -> None:
    bold = _bold()
    reset = _reset()
    dim = _dim()
    person = profile.person
    keys = person.keys

    # -- Header ---------------------------------------------------------------
    print(f"\n{bold}{_bar()}{reset}")
    name = profile.display_name or f"{person.first_name} {person.last_name}".strip() or "(no name)"
    status = f"{_green()}current{reset}" if person.current_affiliate else f"{dim}not current{reset}"
    print(f"  {bold}{name}{reset}  │  {status}")
    print(f"{bold}{_bar()}{reset}")

    # -- Identity -------------------------------------------------------------
    print(_section("IDENTITY"))
    _rows(
        [
            ("Global ID", keys.global_id),
            ("Legacy ID", keys.legacy_id),
            ("Login", keys.login_name),
            ("Employee number", keys.employee_number),
            ("Student number", keys.student_number),
            ("Mail ID", person.mail_id),
        ]
    )

    # -- Contact --------------------------------------------------------------
    print(_section("CONTACT"))
    note = _unavailable_note(profile, "contact")
    if note:
        print(note)
    contact = profile.contact
    if contact is not None:
        _rows(
            [
                ("Title", contact.title),
                ("Department", contact.department),
                ("Email", contact.email),
                ("Phone", contact.phone),
                ("Mobile", contact.mobile),
                ("Pager", contact.pager),
            ]
        )
        if contact.postal_address:
            lines = contact.postal_address.splitlines()
            print(f"    {'Postal address':<22}  {lines[0]}")
            for line in lines[1:]:
                print(f"    {'':<22}  {line}")
    elif not note:
        print("    No directory entry.")

    # -- Employment -----------------------------------------------------------
    print(_section("EMPLOYMENT"))
    note = _unavailable_note(profile, "position")
    if note:
        print(note)
    emp = profile.employment
    if emp is not None:
        affiliation = [label for flag, label in ((emp.is_employee, "Employee"), (emp.is_student, "Student")) if flag]
        _rows(
            [
                ("Affiliation", ", ".join(affiliation) or "None this term"),
                ("Title", emp.primary_title),
                ("Division", emp.school_division),
                ("Home department", emp.home_department),
                ("Status", emp.employee_status),
                ("Job", f"{emp.job_code} {emp.job_description or ''}".strip() if emp.job_code else None),
                ("Department", emp.department_description),
                ("FTE", emp.fte),
                ("Reports to", emp.reports_to_name),
                ("Expected end", _fmt_date(emp.expected_end_date) if emp.expected_end_date else None),
            ]
        )
        if emp.flags:
            print(f"    {'HR flags':<22}  {', '.join(emp.flags)}")
    elif not note:
        print("    No employee or student record.")

    # -- Histories ------------------------------------------------------------
    print(_section(f"BADGES ({len(profile.badges)})"))
    note = _unavailable_note(profile, "badge")
    if note:
        print(note)
    for badge in profile.badges:
        print(f"    {_fmt_date(badge.applied_date):<12} {badge.number or '-':<14} {badge.status}")

    print(_section(f"KEYS ({len(profile.keys)})"))
    note = _unavailable_note(profile, "key")
    if note:
        print(note)
    for key in profile.keys:
        issuer = f"  {dim}by {key.issued_by}{reset}" if key.issued_by else ""
        access = key.access_description or ""
        print(f"    {_fmt_date(key.issued_date):<12} {key.key_number or '-':<14} {access}{issuer}")

    print(_section(f"LOANS ({len(profile.loans)})"))
    note = _unavailable_note(profile, "loan")
    if note:
        print(note)
    for loan in profile.loans:
        print(f"    {_fmt_date(loan.loan_date):<12} due {_fmt_date(loan.due_date):<12} {loan.asset_name or '-'}")

    # -- Credentialing platform -----------------------------------------------
    print(_section("CREDENTIALING PLATFORM"))
    note = _unavailable_note(profile, "credential")
    if note:
        print(note)
    cred = profile.credential
    if cred is not None:
        _rows(
            [
                ("Username", cred.username),
                ("Status", cred.status),
                ("Active", "yes" if cred.is_active else "no"),
                ("Password expires", _fmt_date(cred.password_expires_at) if cred.password_expires_at else None),
                ("Roles", ", ".join(cred.roles) if cred.roles else None),
            ]
        )
    elif not note:
        print("    No matching account.")

    print(f"\n{_bar()}\n")


# ---------------------------------------------------------------------------
# JSON export
# ---------------------------------------------------------------------------


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def to_dict(profile: UnifiedProfile) -> dict[str, Any]:
    """Return a JSON-serializable dict. Dates become ISO-8601 strings."""
    d = _jsonable(asdict(profile))
    d["unavailable_sources"] = profile.unavailable_sources
    return d


def to_json(profile: UnifiedProfile) -> str:
    return json.dumps(to_dict(profile), indent=2)
