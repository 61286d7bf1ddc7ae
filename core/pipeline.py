"""
core/pipeline.py -- Resolve, fan out, merge.

No print statements. Called by both the CLI (via main.py) and the REST API
(via api/routes/v1/profile.py).

aggregate() is a coroutine. Identity resolution and every adapter are
blocking calls (SQLAlchemy, requests), so each runs on a worker thread via
asyncio.to_thread under its own asyncio.wait_for deadline. Resolution that
misses its deadline counts as not found.

Cancelling aggregate() cancels every pending adapter task; a worker thread
that is already running finishes inside its outbound HTTP/database timeout
and its result is discarded.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

from core.adapters import build_adapters
from core.merger import build_profile
from core.models import PartialProfile, PersonRecord, SourceOutcome, UnifiedProfile
from core.resolver import IdentityResolver

if TYPE_CHECKING:
    from cache.token import TokenCache
    from core.config import Settings
    from records.store import RecordsStore

logger = logging.getLogger("vetdir.pipeline")


class Adapter(Protocol):
    name: str

    def fetch(self, person: PersonRecord) -> tuple[Optional[PartialProfile], bool]: ...


class ProfileAggregator:
    def __init__(self, resolver: IdentityResolver, adapters: Sequence[Adapter], timeout: float = 5.0) -> None:
        if timeout <= 0:
            raise ValueError("Per-source timeout must be positive")
        self._resolver = resolver
        self._adapters = list(adapters)
        self._timeout = timeout

    @property
    def source_names(self) -> list[str]:
        return [a.name for a in self._adapters]

    async def aggregate(
        self, global_id: Optional[str] = None, legacy_id: Optional[str] = None
    ) -> Optional[UnifiedProfile]:
        """Build the unified profile for one person. Returns None if neither identifier resolves.

        Source failures never raise; they are recorded in profile.sources.
        """
        try:
            identity = await asyncio.wait_for(
                asyncio.to_thread(self._resolver.resolve, global_id, legacy_id), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Identity resolution timed out after %.1fs (global_id=%s legacy_id=%s)",
                self._timeout,
                global_id,
                legacy_id,
            )
            return None
        if not identity.is_valid:
            return None

        person = identity.person
        results = await asyncio.gather(*(self._run_source(a, person) for a in self._adapters))

        partials = [partial for partial, _outcome in results if partial is not None]
        outcomes = [outcome for _partial, outcome in results]

        failed = [o.source for o in outcomes if not o.ok]
        if failed:
            logger.info("Profile for %s built without: %s", identity.keys.global_id, ", ".join(failed))
        return build_profile(person, partials, outcomes)

    async def _run_source(
        self, adapter: Adapter, person: PersonRecord
    ) -> tuple[Optional[PartialProfile], SourceOutcome]:
        started = time.perf_counter()

        def _outcome(ok: bool, error: Optional[str] = None) -> SourceOutcome:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
            return SourceOutcome(source=adapter.name, ok=ok, error=error, elapsed_ms=elapsed_ms)

        try:
            partial, ok = await asyncio.wait_for(asyncio.to_thread(adapter.fetch, person), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs for %s", adapter.name, self._timeout, person.keys.global_id)
            return None, _outcome(False, "timeout")
        except Exception:
            # Adapters catch their own expected failures; anything here is a bug.
            logger.exception("%s raised unexpectedly for %s", adapter.name, person.keys.global_id)
            return None, _outcome(False, "error")

        if not ok:
            return None, _outcome(False, "unavailable")
        return partial, _outcome(True)


def build_aggregator(settings: "Settings", records: "RecordsStore", token_cache: "TokenCache") -> ProfileAggregator:
    """Wire the resolver and the production adapters around a RecordsStore."""
    return ProfileAggregator(
        IdentityResolver(records),
        build_adapters(settings, records, token_cache),
        timeout=settings.source_timeout_seconds,
    )
