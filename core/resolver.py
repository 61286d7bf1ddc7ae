"""
core/resolver.py -- Map caller-supplied identifiers to the canonical person.

Tries the global id first and falls back to the legacy id. One query per
identifier tried, no writes. "Neither resolves" is a normal outcome and comes
back as an invalid ResolvedIdentity, never an exception.
"""

import logging
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError

from core.models import PersonRecord, ResolvedIdentity

logger = logging.getLogger("vetdir.resolver")


class PersonDirectory(Protocol):
    def get_person_by_global_id(self, global_id: str) -> Optional[PersonRecord]: ...

    def get_person_by_legacy_id(self, legacy_id: str) -> Optional[PersonRecord]: ...


class IdentityResolver:
    def __init__(self, directory: PersonDirectory) -> None:
        self._directory = directory

    def resolve(self, global_id: Optional[str] = None, legacy_id: Optional[str] = None) -> ResolvedIdentity:
        global_id = (global_id or "").strip()
        legacy_id = (legacy_id or "").strip()

        person: Optional[PersonRecord] = None
        try:
            if global_id:
                person = self._directory.get_person_by_global_id(global_id)
            if person is None and legacy_id:
                person = self._directory.get_person_by_legacy_id(legacy_id)
        except SQLAlchemyError as e:
            logger.warning("System of record lookup failed (global_id=%s legacy_id=%s): %s", global_id, legacy_id, e)
            return ResolvedIdentity()

        if person is None:
            logger.info("No canonical record for global_id=%r legacy_id=%r", global_id, legacy_id)
        return ResolvedIdentity(person=person)
