"""
Tests for DomainCache TTL semantics and domain normalization.
"""
import datetime as dt
import pytest

from src.models.validation import WebsiteDetails
from src.services.domain_cache import DomainCache, normalize_domain
from tests.conftest import FixedClock, InMemoryDomainCacheStore

pytestmark = pytest.mark.asyncio

TTL = dt.timedelta(days=30)


def details(domain="acme.com", score=70):
    return WebsiteDetails(domain=domain, legitimacy_score=score)


class TestNormalizeDomain:

    @pytest.mark.parametrize("raw,expected", [
        ("acme.com", "acme.com"),
        ("HTTPS://www.Acme.com/", "acme.com"),
        ("http://acme.com/about/team", "acme.com"),
        ("  www.acme.co.uk.  ", "acme.co.uk"),
        ("", ""),
    ])
    async def test_normalize(self, raw, expected):
        assert normalize_domain(raw) == expected


class TestDomainCache:

    async def test_miss_on_empty_store(self):
        cache = DomainCache(InMemoryDomainCacheStore(), ttl=TTL, clock=FixedClock())
        assert await cache.get_fresh("acme.com") is None

    async def test_hit_within_ttl(self):
        clock = FixedClock()
        cache = DomainCache(InMemoryDomainCacheStore(), ttl=TTL, clock=clock)
        await cache.put("www.acme.com", details())

        clock.advance(days=29, hours=23)
        entry = await cache.get_fresh("https://acme.com")

        assert entry is not None
        assert entry.result.legitimacy_score == 70

    async def test_exactly_at_ttl_is_stale(self):
        clock = FixedClock()
        cache = DomainCache(InMemoryDomainCacheStore(), ttl=TTL, clock=clock)
        await cache.put("acme.com", details())

        clock.advance(days=30)

        assert await cache.get_fresh("acme.com") is None

    async def test_older_than_ttl_never_served(self):
        clock = FixedClock()
        cache = DomainCache(InMemoryDomainCacheStore(), ttl=TTL, clock=clock)
        await cache.put("acme.com", details())

        clock.advance(days=45)

        assert await cache.get_fresh("acme.com") is None

    async def test_put_replaces_wholesale(self):
        clock = FixedClock()
        store = InMemoryDomainCacheStore()
        cache = DomainCache(store, ttl=TTL, clock=clock)
        await cache.put("acme.com", details(score=40))
        clock.advance(days=31)
        await cache.put("acme.com", details(score=80))

        entry = await cache.get_fresh("acme.com")

        assert entry.result.legitimacy_score == 80
        assert entry.last_analyzed_at == clock.now
        assert len(store.rows) == 1
