"""Unit tests for core/pipeline.py -- ProfileAggregator.

Adapters are small fakes so each test controls exactly which source succeeds,
fails, hangs, or raises. The async engine is driven with asyncio.run().
Tests focus on:
- short-circuit on unresolvable identity (no adapter runs)
- isolation: one failing source never affects another
- per-source timeout and cancellation
- merge precedence and end-to-end against the seeded store
"""

import asyncio
import threading
import time
from typing import Optional
from unittest.mock import MagicMock

import pytest

from core.adapters import BadgeAdapter, KeyAdapter, LoanAdapter, PositionAdapter
from core.config import Settings
from core.models import (
    ContactInfo,
    EmploymentInfo,
    IdentityKeySet,
    PartialProfile,
    PersonRecord,
    ResolvedIdentity,
)
from core.pipeline import ProfileAggregator, build_aggregator
from core.resolver import IdentityResolver
from tests.seed_data import BARE_LEGACY_ID, MARY_GLOBAL_ID

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

_PERSON = PersonRecord(
    keys=IdentityKeySet(global_id="G1", legacy_id="L1", login_name="mary"),
    first_name="Mary",
    last_name="Smith",
    display_full_name="Mary Smith",
)


class FakeAdapter:
    def __init__(self, name: str, fields: Optional[dict] = None, ok: bool = True, delay: float = 0.0, exc=None):
        self.name = name
        self._fields = fields or {}
        self._ok = ok
        self._delay = delay
        self._exc = exc
        self.calls = 0

    def fetch(self, person):
        self.calls += 1
        if self._delay:
            time.sleep(self._delay)
        if self._exc is not None:
            raise self._exc
        if not self._ok:
            return None, False
        return PartialProfile(self.name, self._fields), True


def _resolver(person: Optional[PersonRecord] = _PERSON) -> MagicMock:
    resolver = MagicMock()
    resolver.resolve.return_value = ResolvedIdentity(person=person)
    return resolver


# ---------------------------------------------------------------------------
# TestShortCircuit
# ---------------------------------------------------------------------------


class TestShortCircuit:
    def test_unresolved_returns_none_and_runs_no_adapter(self):
        adapters = [FakeAdapter("contact"), FakeAdapter("badge")]
        engine = ProfileAggregator(_resolver(person=None), adapters, timeout=1)
        assert asyncio.run(engine.aggregate("X123", "NOPE")) is None
        assert all(a.calls == 0 for a in adapters)

    def test_identifiers_passed_to_resolver(self):
        resolver = _resolver()
        asyncio.run(ProfileAggregator(resolver, [], timeout=1).aggregate("G1", "L1"))
        resolver.resolve.assert_called_once_with("G1", "L1")

    def test_hung_resolution_is_bounded_and_not_found(self):
        release = threading.Event()
        resolver = MagicMock()
        resolver.resolve.side_effect = lambda *_: release.wait(timeout=2) and ResolvedIdentity(person=_PERSON)
        adapter = FakeAdapter("contact")
        engine = ProfileAggregator(resolver, [adapter], timeout=0.1)

        async def scenario():
            started = time.perf_counter()
            result = await engine.aggregate("G1")
            elapsed = time.perf_counter() - started
            release.set()
            return result, elapsed

        try:
            result, elapsed = asyncio.run(scenario())
        finally:
            release.set()
        assert result is None
        assert elapsed < 0.5
        assert adapter.calls == 0

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValueError):
            ProfileAggregator(_resolver(), [], timeout=0)


# ---------------------------------------------------------------------------
# TestIsolation
# ---------------------------------------------------------------------------


class TestIsolation:
    def test_failed_source_leaves_others_intact(self):
        contact = ContactInfo(email="m@example.edu")
        employment = EmploymentInfo(is_employee=True)
        adapters = [
            FakeAdapter("contact", {"contact": contact}),
            FakeAdapter("position", {"employment": employment}),
            FakeAdapter("badge", ok=False),
        ]
        profile = asyncio.run(ProfileAggregator(_resolver(), adapters, timeout=1).aggregate("G1"))
        assert profile.contact == contact
        assert profile.employment == employment
        assert profile.badges == ()
        assert profile.unavailable_sources == ["badge"]
        outcome = {o.source: o for o in profile.sources}
        assert outcome["badge"].error == "unavailable"
        assert outcome["contact"].ok and outcome["contact"].error is None

    def test_raising_adapter_recorded_as_error(self):
        adapters = [FakeAdapter("contact", exc=RuntimeError("bug")), FakeAdapter("badge", {"badges": ()})]
        profile = asyncio.run(ProfileAggregator(_resolver(), adapters, timeout=1).aggregate("G1"))
        assert profile is not None
        outcome = {o.source: o for o in profile.sources}
        assert outcome["contact"].error == "error"
        assert outcome["badge"].ok

    def test_every_adapter_failing_still_returns_profile(self):
        adapters = [FakeAdapter(n, ok=False) for n in ("contact", "position", "badge", "key", "loan", "credential")]
        profile = asyncio.run(ProfileAggregator(_resolver(), adapters, timeout=1).aggregate("G1"))
        assert profile.person == _PERSON
        assert profile.display_name == "Mary Smith"
        assert len(profile.unavailable_sources) == 6

    def test_outcomes_in_adapter_order(self):
        adapters = [FakeAdapter("loan", delay=0.05), FakeAdapter("contact")]
        profile = asyncio.run(ProfileAggregator(_resolver(), adapters, timeout=1).aggregate("G1"))
        assert [o.source for o in profile.sources] == ["loan", "contact"]
        assert profile.sources[0].elapsed_ms >= 40


# ---------------------------------------------------------------------------
# TestTimeouts
# ---------------------------------------------------------------------------


class TestTimeouts:
    def test_slow_source_times_out_alone(self):
        adapters = [FakeAdapter("contact", {"display_name": "Dr. Smith"}), FakeAdapter("credential", delay=0.5)]
        profile = asyncio.run(ProfileAggregator(_resolver(), adapters, timeout=0.1).aggregate("G1"))
        outcome = {o.source: o for o in profile.sources}
        assert outcome["credential"].error == "timeout"
        assert outcome["contact"].ok

    def test_sources_run_concurrently(self):
        adapters = [FakeAdapter(n, delay=0.2) for n in ("contact", "position", "badge", "key")]
        started = time.perf_counter()
        asyncio.run(ProfileAggregator(_resolver(), adapters, timeout=2).aggregate("G1"))
        assert time.perf_counter() - started < 0.6

    def test_cancelling_aggregate_propagates_to_caller(self):
        release = threading.Event()

        class BlockingAdapter(FakeAdapter):
            def fetch(self, person):
                self.calls += 1
                release.wait(timeout=2)
                return PartialProfile(self.name, {}), True

        adapter = BlockingAdapter("badge")
        engine = ProfileAggregator(_resolver(), [adapter], timeout=5)

        async def scenario():
            task = asyncio.create_task(engine.aggregate("G1"))
            await asyncio.sleep(0.1)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            release.set()

        try:
            asyncio.run(scenario())
        finally:
            release.set()
        assert adapter.calls == 1


# ---------------------------------------------------------------------------
# TestMergeThroughEngine
# ---------------------------------------------------------------------------


class TestMergeThroughEngine:
    def test_person_display_name_wins_over_contact(self):
        adapters = [FakeAdapter("contact", {"display_name": "Dr. Mary Smith", "contact": ContactInfo()})]
        profile = asyncio.run(ProfileAggregator(_resolver(), adapters, timeout=1).aggregate("G1"))
        assert profile.display_name == "Mary Smith"

    def test_contact_display_name_used_when_record_has_none(self):
        person = PersonRecord(keys=IdentityKeySet(global_id="G2"), first_name="Pat", last_name="Doe")
        adapters = [FakeAdapter("contact", {"display_name": "Pat Doe, DVM"})]
        profile = asyncio.run(ProfileAggregator(_resolver(person), adapters, timeout=1).aggregate("G2"))
        assert profile.display_name == "Pat Doe, DVM"


# ---------------------------------------------------------------------------
# TestEndToEnd -- seeded store, real relational adapters
# ---------------------------------------------------------------------------


class TestEndToEnd:
    def _engine(self, store):
        adapters = [PositionAdapter(store), BadgeAdapter(store), KeyAdapter(store), LoanAdapter(store)]
        return ProfileAggregator(IdentityResolver(store), adapters, timeout=2)

    def test_legacy_fallback_with_empty_histories(self, records_store):
        profile = asyncio.run(self._engine(records_store).aggregate("X123", BARE_LEGACY_ID))
        assert profile is not None
        assert profile.person.keys.legacy_id == BARE_LEGACY_ID
        assert profile.badges == () and profile.keys == () and profile.loans == ()
        assert profile.unavailable_sources == []

    def test_full_profile(self, records_store):
        profile = asyncio.run(self._engine(records_store).aggregate(MARY_GLOBAL_ID))
        assert profile.display_name == "Mary Smith"
        assert profile.employment.flags == ("Faculty", "Supervisor")
        assert [b.number for b in profile.badges] == ["B-2023", "B-2022", "B-2021"]
        assert [k.issued_by for k in profile.keys] == ["Kay Keeper", "Kay Keeper"]
        assert [i.asset_name for i in profile.loans] == ["Laptop", "Stethoscope", "Microscope"]

    def test_unresolvable(self, records_store):
        assert asyncio.run(self._engine(records_store).aggregate("X123", "NOPE")) is None

    def test_build_aggregator_unconfigured_http_sources(self, records_store):
        settings = Settings(contact_directory_url="", credential_api_url="")
        engine = build_aggregator(settings, records_store, MagicMock())
        profile = asyncio.run(engine.aggregate(MARY_GLOBAL_ID))
        assert sorted(profile.unavailable_sources) == ["contact", "credential"]
        assert profile.employment is not None
