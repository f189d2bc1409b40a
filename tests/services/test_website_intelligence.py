"""
Tests for WebsiteIntelligenceAnalyzer: caching, scoring rubric, failure mapping.
"""
import asyncio
import datetime as dt
import pytest
from unittest.mock import AsyncMock

from src.models.validation import FailedOutcome, FailureReason, OkOutcome
from src.services.domain_cache import DomainCache
from src.services.site_fetcher import FetchedSite, SiteFetchError
from src.services.website_intelligence import (
    BASE_POINTS,
    WebsiteIntelligenceAnalyzer,
    analysis_confidence,
    company_name_matches,
    legitimacy_score,
)
from tests.conftest import FakeCompleter, FixedClock, InMemoryDomainCacheStore

GOOD_SUMMARY = {
    "business_description": True,
    "products_or_services": True,
    "client_evidence": False,
    "summary": "Commercial construction contractor.",
}


def fetched_site(text_length=2500, **signals):
    page_signals = {
        "contact_page": True, "about_page": True, "privacy_policy": False,
        "careers_page": False, "team_page": False, "contact_info": True, "parked": False,
    }
    page_signals.update(signals)
    return FetchedSite(
        url="https://acme.com",
        status_code=200,
        title="Acme Builders",
        meta_description="Commercial construction",
        text="Acme Builders " + "x" * (text_length - 14),
        page_signals=page_signals,
    )


class CountingFetcher:

    def __init__(self, site=None, error=None, delay=0.0):
        self.site = site or fetched_site()
        self.error = error
        self.delay = delay
        self.calls = []

    async def fetch(self, domain):
        self.calls.append(domain)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.site


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store():
    return InMemoryDomainCacheStore()


def analyzer_with(store, clock, fetcher, completer=None, **kwargs):
    cache = DomainCache(store, ttl=dt.timedelta(days=30), clock=clock)
    return WebsiteIntelligenceAnalyzer(
        cache,
        completer or FakeCompleter(GOOD_SUMMARY),
        fetcher=fetcher,
        clock=clock,
        **kwargs,
    )


@pytest.mark.asyncio
class TestCaching:

    async def test_second_request_one_second_later_is_served_from_cache(self, store, clock):
        fetcher = CountingFetcher()
        completer = FakeCompleter(GOOD_SUMMARY)
        analyzer = analyzer_with(store, clock, fetcher, completer)

        first = await analyzer.analyze("acme.com", company_name="Acme Builders")
        clock.advance(seconds=1)
        second = await analyzer.analyze("https://www.acme.com/")

        assert isinstance(first, OkOutcome) and isinstance(second, OkOutcome)
        assert fetcher.calls == ["acme.com"]
        assert completer.call_count == 1
        assert second.score == first.score
        assert second.details.from_cache is True
        assert first.details.from_cache is False

    async def test_exact_ttl_boundary_refetches_once(self, store, clock):
        fetcher = CountingFetcher()
        analyzer = analyzer_with(store, clock, fetcher)

        await analyzer.analyze("acme.com")
        clock.advance(days=30)
        await analyzer.analyze("acme.com")
        await analyzer.analyze("acme.com")

        assert len(fetcher.calls) == 2
        assert store.puts == 2

    async def test_failed_analysis_never_cached(self, store, clock):
        fetcher = CountingFetcher(error=SiteFetchError("connection refused"))
        analyzer = analyzer_with(store, clock, fetcher)

        outcome = await analyzer.analyze("acme.com")

        assert isinstance(outcome, FailedOutcome)
        assert outcome.reason == FailureReason.UPSTREAM_ERROR
        assert store.rows == {}

    async def test_failure_does_not_poison_existing_entry(self, store, clock):
        analyzer = analyzer_with(store, clock, CountingFetcher())
        await analyzer.analyze("acme.com")
        original = store.rows["acme.com"]

        clock.advance(days=31)
        broken = analyzer_with(store, clock, CountingFetcher(error=SiteFetchError("down")))
        outcome = await broken.analyze("acme.com")

        assert isinstance(outcome, FailedOutcome)
        assert store.rows["acme.com"] is original

    async def test_cache_read_error_is_a_miss(self, clock):
        store = InMemoryDomainCacheStore()
        store.get = AsyncMock(side_effect=RuntimeError("mongo unavailable"))
        fetcher = CountingFetcher()
        analyzer = analyzer_with(store, clock, fetcher)

        outcome = await analyzer.analyze("acme.com")

        assert isinstance(outcome, OkOutcome)
        assert fetcher.calls == ["acme.com"]

    async def test_cache_write_error_still_returns_result(self, clock):
        store = InMemoryDomainCacheStore()
        store.put = AsyncMock(side_effect=RuntimeError("mongo unavailable"))
        analyzer = analyzer_with(store, clock, CountingFetcher())

        outcome = await analyzer.analyze("acme.com")

        assert isinstance(outcome, OkOutcome)


@pytest.mark.asyncio
class TestFailures:

    async def test_missing_domain(self, store, clock):
        fetcher = CountingFetcher()
        outcome = await analyzer_with(store, clock, fetcher).analyze(None)

        assert outcome.reason == FailureReason.MISSING_INPUT
        assert fetcher.calls == []

    async def test_fetch_timeout(self, store, clock):
        fetcher = CountingFetcher(delay=1.0)
        analyzer = analyzer_with(store, clock, fetcher, fetch_timeout_seconds=0.01)

        outcome = await analyzer.analyze("acme.com")

        assert outcome.reason == FailureReason.TIMEOUT

    async def test_summary_timeout(self, store, clock):
        completer = FakeCompleter(GOOD_SUMMARY, delay=1.0)
        analyzer = analyzer_with(store, clock, CountingFetcher(), completer, summary_timeout_seconds=0.01)

        outcome = await analyzer.analyze("acme.com")

        assert outcome.reason == FailureReason.TIMEOUT
        assert store.rows == {}

    async def test_unusable_summary(self, store, clock):
        analyzer = analyzer_with(store, clock, CountingFetcher(), FakeCompleter("no json here"))

        outcome = await analyzer.analyze("acme.com")

        assert outcome.reason == FailureReason.UPSTREAM_ERROR


class TestScoring:

    @pytest.mark.asyncio
    async def test_signals_recorded(self, store, clock):
        outcome = await analyzer_with(store, clock, CountingFetcher()).analyze("acme.com", company_name="Acme Builders")

        signals = outcome.details.signals
        assert signals["business_description"] is True
        assert signals["client_evidence"] is False
        assert signals["company_name_match"] is True
        assert outcome.details.analysis_version == "v1.0"
        assert outcome.details.confidence_level == "high"
        # base + description + products + contact_info + about_page + name match
        assert outcome.score == BASE_POINTS + 15 + 15 + 10 + 10 + 5

    def test_parked_page_penalized(self):
        signals = {"contact_info": True, "parked": True}
        assert legitimacy_score(signals, 2000) == max(0, BASE_POINTS + 10 - 50)

    def test_thin_content_penalized(self):
        assert legitimacy_score({"about_page": True}, 100) == BASE_POINTS + 10 - 20

    def test_score_clamped(self):
        everything = {name: True for name in (
            "business_description", "products_or_services", "contact_info", "about_page",
            "client_evidence", "team_page", "privacy_policy", "careers_page", "company_name_match",
        )}
        assert legitimacy_score(everything, 5000) == 100

    def test_confidence_levels(self):
        assert analysis_confidence({"parked": True}, 5000) == "low"
        assert analysis_confidence({}, 100) == "low"
        assert analysis_confidence({}, 1000) == "medium"
        assert analysis_confidence({}, 2000) == "high"

    def test_company_name_match_ignores_suffixes(self):
        site = fetched_site()
        assert company_name_matches("Acme Builders, Inc.", site) is True
        assert company_name_matches("Globex", site) is False
        assert company_name_matches(None, site) is False
