"""
Site Fetcher
Bounded-time retrieval of a company's home page, reduced to readable text
plus a handful of structural signals the legitimacy rubric relies on.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from src.config import settings

_PARKED_MARKERS = (
    "domain for sale",
    "this domain is for sale",
    "buy this domain",
    "domain is parked",
    "parked free",
    "coming soon",
    "under construction",
    "website coming soon",
)

# Link text/href fragments that indicate the page, by signal name
_LINK_SIGNALS: Dict[str, tuple[str, ...]] = {
    "contact_page": ("contact",),
    "about_page": ("about",),
    "privacy_policy": ("privacy",),
    "careers_page": ("careers", "jobs", "join-us", "join us"),
    "team_page": ("team", "leadership", "our-people"),
}


class SiteFetchError(Exception):
    """The site could not be retrieved or returned nothing usable."""
    pass


@dataclass
class FetchedSite:
    url: str
    status_code: int
    title: Optional[str]
    meta_description: Optional[str]
    text: str
    page_signals: Dict[str, bool] = field(default_factory=dict)

    @property
    def text_length(self) -> int:
        return len(self.text)


class SiteFetcher(Protocol):
    async def fetch(self, domain: str) -> FetchedSite:
        ...


def _clean_html(soup: BeautifulSoup) -> str:
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text("\n")
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def parse_site(url: str, status_code: int, html: str, max_chars: int) -> FetchedSite:
    """Extract title, meta description, readable text and page signals from raw HTML."""
    soup = BeautifulSoup(html or "", "html.parser")

    title = soup.title.get_text(strip=True) if soup.title else None
    meta = soup.find("meta", attrs={"name": "description"})
    meta_description = meta.get("content", "").strip() if meta else None

    links = " ".join(
        f"{a.get('href', '')} {a.get_text(' ', strip=True)}".lower()
        for a in soup.find_all("a")
    )
    signals = {
        name: any(fragment in links for fragment in fragments)
        for name, fragments in _LINK_SIGNALS.items()
    }

    text = _clean_html(soup)
    lowered = text.lower()
    signals["contact_info"] = bool(
        re.search(r"[\w.+-]+@[\w-]+\.[\w.]+", text)
        or re.search(r"\+?\d[\d\s().-]{7,}\d", text)
        or signals["contact_page"]
    )
    signals["parked"] = any(marker in lowered for marker in _PARKED_MARKERS)

    return FetchedSite(
        url=url,
        status_code=status_code,
        title=title or None,
        meta_description=meta_description or None,
        text=text[:max_chars],
        page_signals=signals,
    )


class HttpSiteFetcher:
    """
    httpx-based fetcher. Tries https first, then plain http.

    Usage:
        >>> fetcher = HttpSiteFetcher()
        >>> site = await fetcher.fetch("acme.com")
    """

    def __init__(
        self,
        timeout_seconds: float | None = None,
        user_agent: str | None = None,
        max_chars: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout_seconds = timeout_seconds or settings.site_fetch_timeout_seconds
        self.user_agent = user_agent or settings.site_fetch_user_agent
        self.max_chars = max_chars or settings.site_fetch_max_chars
        self._transport = transport

    async def fetch(self, domain: str) -> FetchedSite:
        headers = {"User-Agent": self.user_agent, "Accept": "text/html,application/xhtml+xml"}
        errors = []

        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            follow_redirects=True,
            headers=headers,
            transport=self._transport,
        ) as client:
            for scheme in ("https", "http"):
                url = f"{scheme}://{domain}"
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.debug(f"Fetch failed for {url}: {e}")
                    errors.append(f"{scheme}: {e}")
                    continue

                content_type = response.headers.get("content-type", "").lower()
                if "html" not in content_type:
                    errors.append(f"{scheme}: unsupported content type {content_type or 'unknown'}")
                    continue

                return parse_site(str(response.url), response.status_code, response.text, self.max_chars)

        raise SiteFetchError(f"Could not fetch {domain}: {'; '.join(errors)}")
