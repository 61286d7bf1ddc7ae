"""
records/store.py -- Read-only SQLAlchemy Core access to the relational backends.

Pattern: Repository + Data Mapper, one repository spanning several databases.
RecordsStore owns one Engine per distinct URL; each backend system (person,
hr, badge, key, loan) is routed to its engine. The _row_to_* functions map raw
rows into the domain dataclasses in core/models.py.

Query methods do not catch database errors. SQLAlchemyError propagates to
the resolver / adapter that issued the query, which owns the failure policy.
ping() is the one exception: it exists to report reachability.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = RecordsStore.from_settings(get_settings())
    store = RecordsStore({"person": "sqlite:///:memory:", ...}, create_schema=True)
    person = store.get_person_by_global_id("1000123456")
    badges = store.list_badges("jdoe")
    store.close()
"""

import logging
import math
from typing import Any, Mapping, Optional

from sqlalchemy import and_, create_engine, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from core.config import RECORD_SYSTEMS, Settings
from core.models import BadgeRecord, IdentityKeySet, KeyAssignment, LoanItem, PersonRecord
from records.schema import (
    HR_FLAG_LABELS,
    SYSTEM_METADATA,
    VET_STUDENT_LEVEL,
    assets,
    employees,
    hr_people,
    id_cards,
    job_positions,
    key_assignments,
    keys,
    loan_items,
    loans,
    people,
    students,
    terms,
)

logger = logging.getLogger("vetdir.records")


class RecordsStore:
    def __init__(
        self, db_urls: Mapping[str, str], create_schema: bool = False, query_timeout: float = 3.0
    ) -> None:
        missing = [s for s in RECORD_SYSTEMS if s not in db_urls]
        if missing:
            raise ValueError(f"No database URL for record system(s): {', '.join(missing)}")

        # Systems sharing a URL share an engine (and, for SQLite memory URIs, a database).
        by_url: dict[str, Engine] = {}
        self._engines: dict[str, Engine] = {}
        for system in RECORD_SYSTEMS:
            url = db_urls[system]
            if url not in by_url:
                by_url[url] = create_engine(url, **engine_options(url, query_timeout))
            self._engines[system] = by_url[url]

        if create_schema:
            for system, metadata in SYSTEM_METADATA.items():
                metadata.create_all(self._engines[system])

    @classmethod
    def from_settings(cls, settings: Settings, create_schema: bool = False) -> "RecordsStore":
        return cls(
            {s: settings.db_url_for(s) for s in RECORD_SYSTEMS},
            create_schema=create_schema,
            query_timeout=settings.db_timeout_seconds,
        )

    def engine(self, system: str) -> Engine:
        return self._engines[system]

    # ------------------------------------------------------------------
    # person -- system of record
    # ------------------------------------------------------------------

    def get_person_by_global_id(self, global_id: str) -> Optional[PersonRecord]:
        """Fetch the canonical person for a global id. None if not found."""
        return self._get_person(people.c.global_id == global_id)

    def get_person_by_legacy_id(self, legacy_id: str) -> Optional[PersonRecord]:
        """Fetch the canonical person for a legacy id. None if not found."""
        return self._get_person(people.c.legacy_id == legacy_id)

    def _get_person(self, clause) -> Optional[PersonRecord]:
        with self._engines["person"].connect() as conn:
            row = conn.execute(select(people).where(clause).order_by(people.c.id).limit(1)).fetchone()
        return _row_to_person(row) if row is not None else None

    def get_display_name(self, legacy_id: str) -> Optional[str]:
        """Display name for a legacy id, used to label key issuers."""
        with self._engines["person"].connect() as conn:
            return conn.execute(
                select(people.c.display_full_name).where(people.c.legacy_id == legacy_id).limit(1)
            ).scalar_one_or_none()

    def get_current_employee(self, employee_id: str, term_codes: list[str]) -> Optional[dict[str, Any]]:
        """The employee row for any current term. None if not employed this term."""
        if not term_codes:
            return None
        with self._engines["person"].connect() as conn:
            row = conn.execute(
                select(employees)
                .where(and_(employees.c.employee_id == employee_id, employees.c.term_code.in_(term_codes)))
                .order_by(employees.c.term_code.desc())
                .limit(1)
            ).fetchone()
        return dict(row._mapping) if row is not None else None

    def is_current_vet_student(self, student_number: str, term_codes: list[str]) -> bool:
        if not term_codes:
            return False
        with self._engines["person"].connect() as conn:
            row = conn.execute(
                select(students.c.id)
                .where(
                    and_(
                        students.c.student_number == student_number,
                        students.c.level_code == VET_STUDENT_LEVEL,
                        students.c.term_code.in_(term_codes),
                    )
                )
                .limit(1)
            ).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # hr
    # ------------------------------------------------------------------

    def get_current_terms(self) -> list[str]:
        with self._engines["hr"].connect() as conn:
            rows = conn.execute(select(terms.c.term_code).where(terms.c.is_current == 1)).fetchall()
        return [r.term_code for r in rows]

    def get_hr_flags(self, employee_id: str) -> list[str]:
        """Labels of every HR affiliation flag set to "Y", in HR_FLAG_LABELS order."""
        with self._engines["hr"].connect() as conn:
            row = conn.execute(select(hr_people).where(hr_people.c.employee_id == employee_id)).fetchone()
        if row is None:
            return []
        values = row._mapping
        return [label for column, label in HR_FLAG_LABELS if values[column] == "Y"]

    def get_latest_position(self, employee_id: str) -> Optional[dict[str, Any]]:
        """Most recent position by effective date."""
        with self._engines["hr"].connect() as conn:
            row = conn.execute(
                select(job_positions)
                .where(job_positions.c.employee_id == employee_id)
                .order_by(job_positions.c.effective_date.desc(), job_positions.c.id.desc())
                .limit(1)
            ).fetchone()
        return dict(row._mapping) if row is not None else None

    def get_position_holder(self, position_number: str) -> Optional[dict[str, Any]]:
        """Latest row for whoever holds a position number (reports-to lookup)."""
        with self._engines["hr"].connect() as conn:
            row = conn.execute(
                select(job_positions)
                .where(job_positions.c.position_number == position_number)
                .order_by(job_positions.c.effective_date.desc(), job_positions.c.id.desc())
                .limit(1)
            ).fetchone()
        return dict(row._mapping) if row is not None else None

    # ------------------------------------------------------------------
    # badge / key / loan histories
    # ------------------------------------------------------------------

    def list_badges(self, login_id: str) -> list[BadgeRecord]:
        """Badge history for a login id, newest application first."""
        with self._engines["badge"].connect() as conn:
            rows = conn.execute(
                select(id_cards)
                .where(id_cards.c.login_id == login_id)
                .order_by(id_cards.c.applied_date.desc(), id_cards.c.id.desc())
            ).fetchall()
        return [_row_to_badge(r) for r in rows]

    def list_key_assignments(self, legacy_id: str) -> list[KeyAssignment]:
        """Active key assignments, newest first.

        issued_by holds the issuer's legacy id; the key adapter swaps in a
        display name from the person system.
        """
        with self._engines["key"].connect() as conn:
            rows = conn.execute(
                select(key_assignments, keys.c.key_number, keys.c.access_description)
                .join(keys, keys.c.key_id == key_assignments.c.key_id)
                .where(and_(key_assignments.c.assigned_to == legacy_id, key_assignments.c.deleted.is_(None)))
                .order_by(key_assignments.c.issued_date.desc(), key_assignments.c.key_id)
            ).fetchall()
        return [_row_to_key_assignment(r) for r in rows]

    def list_loan_items(self, student_number: str) -> list[LoanItem]:
        """One row per loaned item, newest loan first."""
        with self._engines["loan"].connect() as conn:
            rows = conn.execute(
                select(loans.c.loan_date, loans.c.due_date, loans.c.comments, assets.c.asset_name)
                .select_from(loans)
                .join(loan_items, loan_items.c.loan_id == loans.c.loan_id)
                .outerjoin(assets, assets.c.asset_id == loan_items.c.asset_id)
                .where(loans.c.student_number == student_number)
                .order_by(loans.c.loan_date.desc(), loans.c.loan_id.desc(), loan_items.c.item_id)
            ).fetchall()
        return [_row_to_loan_item(r) for r in rows]

    def ping(self) -> bool:
        """True if the system of record answers a trivial query."""
        try:
            with self._engines["person"].connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError as e:
            logger.warning("System of record unreachable: %s", e)
            return False
        return True

    def close(self) -> None:
        for engine in set(self._engines.values()):
            engine.dispose()


# ---------------------------------------------------------------------------
# Engine options
# ---------------------------------------------------------------------------


def engine_options(url: str, timeout: float) -> dict[str, Any]:
    """create_engine() keyword arguments that bound connect, lock and query waits.

    The bound is pushed down to the driver where the dialect supports it, so a
    hung backend releases its worker thread.
    """
    parsed = make_url(url)
    backend = parsed.get_backend_name()
    whole_seconds = max(1, math.ceil(timeout))

    if backend == "sqlite":
        # Queries run on worker threads (core/pipeline.py).
        options: dict[str, Any] = {"connect_args": {"check_same_thread": False, "timeout": timeout}}
        # Memory databases use a single-connection pool with no checkout wait.
        if parsed.database and parsed.database != ":memory:" and parsed.query.get("mode") != "memory":
            options["pool_timeout"] = timeout
        return options

    if backend == "postgresql":
        connect_args = {
            "connect_timeout": whole_seconds,
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    elif backend in ("mysql", "mariadb"):
        connect_args = {"connect_timeout": whole_seconds, "read_timeout": whole_seconds}
    else:
        connect_args = {}
    return {"connect_args": connect_args, "pool_timeout": timeout}


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def _row_to_person(row) -> PersonRecord:
    return PersonRecord(
        keys=IdentityKeySet(
            global_id=row.global_id,
            legacy_id=row.legacy_id,
            login_name=row.login_id,
            employee_number=row.employee_id,
            student_number=row.student_number,
        ),
        first_name=row.first_name or "",
        middle_name=row.middle_name,
        last_name=row.last_name or "",
        display_first_name=row.display_first_name,
        display_last_name=row.display_last_name,
        display_full_name=row.display_full_name,
        mail_id=row.mail_id,
        current_affiliate=row.current == 1,
    )


def _row_to_badge(row) -> BadgeRecord:
    return BadgeRecord(
        number=row.number,
        display_name=row.display_name,
        last_name=row.last_name,
        line2=row.line2,
        status=row.status or "",
        applied_date=row.applied_date,
        issued_date=row.issue_date,
        deactivated_date=row.deactivated_date,
        deactivated_reason=row.deactivated_reason or "",
    )


def _row_to_key_assignment(row) -> KeyAssignment:
    return KeyAssignment(
        key_number=row.key_number,
        access_description=row.access_description,
        cut_number=row.cut_number,
        issued_date=row.issued_date,
        issued_by=row.issued_by,
    )


def _row_to_loan_item(row) -> LoanItem:
    return LoanItem(
        asset_name=row.asset_name,
        loan_date=row.loan_date,
        due_date=row.due_date,
        comments=row.comments,
    )

