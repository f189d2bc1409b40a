"""
Domain Cache
Time-to-live view over the per-domain website analysis store.
Freshness is computed at read time; writes are plain upserts.
"""
import datetime as dt
import re
from typing import Callable, Optional, Protocol

from loguru import logger

from src.config import settings
from src.models.base import utc_now
from src.models.domain_cache import DomainCacheEntry
from src.models.validation import WebsiteDetails

_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://")


def normalize_domain(domain: str) -> str:
    """
    'HTTPS://www.Acme.com/' -> 'acme.com'.
    Lower-cases, strips the scheme, a leading 'www.', any path and the trailing slash.
    """
    normalized = _SCHEME.sub("", domain.strip().lower())
    if normalized.startswith("www."):
        normalized = normalized[4:]
    normalized = normalized.split("/", 1)[0]
    return normalized.rstrip(".")


class DomainCacheStore(Protocol):
    async def get(self, domain: str) -> Optional[DomainCacheEntry]:
        ...

    async def put(self, entry: DomainCacheEntry) -> DomainCacheEntry:
        ...


class DomainCache:
    """
    An entry is served only while now - last_analyzed_at < ttl. Stale and
    missing entries are the same miss to callers; a fresh analysis replaces
    the stored row wholesale.
    """

    def __init__(
        self,
        store: DomainCacheStore,
        ttl: dt.timedelta | None = None,
        clock: Callable[[], dt.datetime] | None = None,
    ):
        self.store = store
        self.ttl = ttl or dt.timedelta(days=settings.domain_cache_ttl_days)
        self.clock = clock or utc_now

    def is_fresh(self, entry: DomainCacheEntry) -> bool:
        return self.clock() - entry.last_analyzed_at < self.ttl

    async def get_fresh(self, domain: str) -> Optional[DomainCacheEntry]:
        entry = await self.store.get(normalize_domain(domain))
        if entry is None:
            logger.debug(f"Domain cache miss: {domain}")
            return None
        if not self.is_fresh(entry):
            logger.debug(f"Domain cache stale: {domain} (analyzed {entry.last_analyzed_at.isoformat()})")
            return None
        return entry

    async def put(self, domain: str, result: WebsiteDetails) -> DomainCacheEntry:
        now = self.clock()
        entry = DomainCacheEntry(
            domain=normalize_domain(domain),
            result=result,
            last_analyzed_at=now,
            created_at=now,
            updated_at=now,
        )
        await self.store.put(entry)
        logger.debug(f"Domain cache updated: {entry.domain}")
        return entry
