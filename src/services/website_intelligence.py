"""
Website Intelligence Analyzer
Scores how genuine a company's web presence looks (0-100).

Flow: normalize domain -> fresh cache hit? -> fetch (bounded) ->
summarize with the text-completion collaborator (bounded) -> fixed rubric
-> cache the success. Failures come back as FailedOutcome and never touch
the cache.
"""
import asyncio
import datetime as dt
import re
from typing import Callable, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ValidationError

from src.agents.completion_agent import TextCompleter, parse_json_reply
from src.config import settings
from src.models.base import utc_now
from src.models.conversation import ConversationTurn, TurnRole
from src.models.validation import (
    FailureReason,
    ValidatorName,
    ValidatorOutcome,
    WebsiteDetails,
    failed,
    ok,
)
from src.services.domain_cache import DomainCache, normalize_domain
from src.services.site_fetcher import FetchedSite, HttpSiteFetcher, SiteFetcher

ANALYSIS_VERSION = "v1.0"

BASE_POINTS = 20
THIN_CONTENT_CHARS = 500
PARKED_PENALTY = 50
THIN_CONTENT_PENALTY = 20

# Signal -> points when present
RUBRIC: Tuple[Tuple[str, int], ...] = (
    ("business_description", 15),
    ("products_or_services", 15),
    ("contact_info", 10),
    ("about_page", 10),
    ("client_evidence", 10),
    ("team_page", 5),
    ("privacy_policy", 5),
    ("careers_page", 5),
    ("company_name_match", 5),
)

SUMMARY_INSTRUCTIONS = (
    "You review the home page of a company that claims to be a B2B prospect. "
    "Reply with a single JSON object and nothing else:\n"
    '{"business_description": bool, "products_or_services": bool, '
    '"client_evidence": bool, "summary": string}\n'
    "business_description: the page explains what the company does. "
    "products_or_services: concrete offerings are named. "
    "client_evidence: testimonials, case studies, client logos or named customers. "
    "summary: one sentence."
)


class SiteIntelligence(BaseModel):
    business_description: bool = False
    products_or_services: bool = False
    client_evidence: bool = False
    summary: Optional[str] = None


def company_name_matches(company_name: Optional[str], site: FetchedSite) -> bool:
    if not company_name:
        return False
    haystack = f"{site.title or ''} {site.meta_description or ''} {site.text[:2000]}".lower()
    tokens = [t for t in re.findall(r"[a-z0-9]+", company_name.lower()) if len(t) > 2]
    tokens = [t for t in tokens if t not in ("inc", "llc", "ltd", "corp", "the", "company")]
    return bool(tokens) and all(t in haystack for t in tokens)


def legitimacy_score(signals: dict[str, bool], text_length: int) -> int:
    score = BASE_POINTS + sum(points for name, points in RUBRIC if signals.get(name))
    if signals.get("parked"):
        score -= PARKED_PENALTY
    if text_length < THIN_CONTENT_CHARS:
        score -= THIN_CONTENT_PENALTY
    return max(0, min(100, score))


def analysis_confidence(signals: dict[str, bool], text_length: int) -> str:
    if signals.get("parked") or text_length < THIN_CONTENT_CHARS:
        return "low"
    if text_length >= 2000:
        return "high"
    return "medium"


class WebsiteIntelligenceAnalyzer:
    """
    Usage:
        >>> analyzer = WebsiteIntelligenceAnalyzer(cache, completer=CompletionAgent())
        >>> outcome = await analyzer.analyze("https://www.acme.com/", company_name="Acme")
    """

    def __init__(
        self,
        cache: DomainCache,
        completer: TextCompleter,
        fetcher: SiteFetcher | None = None,
        fetch_timeout_seconds: float | None = None,
        summary_timeout_seconds: float | None = None,
        clock: Callable[[], dt.datetime] | None = None,
    ):
        self.cache = cache
        self.completer = completer
        self.fetcher = fetcher or HttpSiteFetcher()
        self.fetch_timeout_seconds = fetch_timeout_seconds or settings.site_fetch_timeout_seconds
        self.summary_timeout_seconds = summary_timeout_seconds or settings.llm_timeout_seconds
        self.clock = clock or utc_now

    async def analyze(self, domain: Optional[str], company_name: Optional[str] = None) -> ValidatorOutcome:
        normalized = normalize_domain(domain or "")
        if not normalized:
            return failed(ValidatorName.WEBSITE, FailureReason.MISSING_INPUT, "No domain to analyze")

        cached = await self._cached(normalized)
        if cached is not None:
            logger.info(f"🗂️ Website analysis served from cache: {normalized}")
            return ok(ValidatorName.WEBSITE, cached.legitimacy_score, cached)

        try:
            site = await asyncio.wait_for(self.fetcher.fetch(normalized), timeout=self.fetch_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"⏱️ Site fetch timed out: {normalized}")
            return failed(ValidatorName.WEBSITE, FailureReason.TIMEOUT, f"Fetching {normalized} timed out")
        except Exception as e:
            logger.warning(f"⚠️ Site fetch failed for {normalized}: {e}")
            return failed(ValidatorName.WEBSITE, FailureReason.UPSTREAM_ERROR, str(e))

        try:
            intelligence = await asyncio.wait_for(self._summarize(site), timeout=self.summary_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"⏱️ Site summary timed out: {normalized}")
            return failed(ValidatorName.WEBSITE, FailureReason.TIMEOUT, f"Summarizing {normalized} timed out")
        except Exception as e:
            logger.warning(f"⚠️ Site summary failed for {normalized}: {e}")
            return failed(ValidatorName.WEBSITE, FailureReason.UPSTREAM_ERROR, f"Analysis failed: {e}")

        details = self._score(normalized, site, intelligence, company_name)

        try:
            await self.cache.put(normalized, details)
        except Exception as e:
            logger.error(f"Domain cache write failed for {normalized}: {e}")

        logger.info(f"🌐 Website analyzed: {normalized} -> {details.legitimacy_score}")
        return ok(ValidatorName.WEBSITE, details.legitimacy_score, details)

    async def _cached(self, domain: str) -> Optional[WebsiteDetails]:
        try:
            entry = await self.cache.get_fresh(domain)
        except Exception as e:
            logger.error(f"Domain cache read failed for {domain}: {e}")
            return None
        if entry is None:
            return None
        return entry.result.model_copy(update={"from_cache": True})

    async def _summarize(self, site: FetchedSite) -> SiteIntelligence:
        page = (
            f"URL: {site.url}\n"
            f"TITLE: {site.title or '-'}\n"
            f"META DESCRIPTION: {site.meta_description or '-'}\n"
            f"TEXT:\n{site.text}"
        )
        messages = [
            ConversationTurn(role=TurnRole.SYSTEM, text=SUMMARY_INSTRUCTIONS),
            ConversationTurn(role=TurnRole.USER, text=page),
        ]
        reply = await self.completer.complete(messages)
        try:
            return SiteIntelligence.model_validate(parse_json_reply(reply))
        except ValidationError as e:
            raise ValueError(f"Unusable site summary: {e}") from e

    def _score(
        self,
        domain: str,
        site: FetchedSite,
        intelligence: SiteIntelligence,
        company_name: Optional[str],
    ) -> WebsiteDetails:
        signals = dict(site.page_signals)
        signals.update(
            business_description=intelligence.business_description,
            products_or_services=intelligence.products_or_services,
            client_evidence=intelligence.client_evidence,
            company_name_match=company_name_matches(company_name, site),
            thin_content=site.text_length < THIN_CONTENT_CHARS,
        )
        return WebsiteDetails(
            domain=domain,
            legitimacy_score=legitimacy_score(signals, site.text_length),
            signals=signals,
            title=site.title,
            summary=intelligence.summary,
            confidence_level=analysis_confidence(signals, site.text_length),
            analysis_version=ANALYSIS_VERSION,
            analyzed_at=self.clock(),
        )
