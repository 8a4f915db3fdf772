"""Website scraper used by the knowledge sync and onboarding analysis.

Pages are fetched with ``requests`` and parsed with BeautifulSoup. Besides
the visible text the scraper pulls out question/answer pairs from the
usual FAQ markup (schema.org ``Question`` items, ``dl`` lists, accordions
and question headings).
"""

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from urllib.parse import urljoin, urlparse

import requests
import structlog
from bs4 import BeautifulSoup, Tag

__all__ = [
    "ScrapeError",
    "ScrapedContent",
    "ScrapedFAQ",
    "ScrapedSite",
    "WebsiteScraper",
    "clean_text",
    "ensure_scheme",
    "format_for_analysis",
]

USER_AGENT = "Mozilla/5.0 (compatible; Botsy/1.0; +https://botsy.no)"
DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "no,nb,nn,en;q=0.5",
}

MAX_HEADINGS = 25
MAX_LINKS = 30
MAX_RAW_FAQS = 20
MAX_MAIN_CONTENT = 15000
MAX_FOOTER_CONTENT = 3000
MAX_FAQ_CONTENT = 5000
MIN_PAGE_CONTENT = 200

FOOTER_SELECTOR = 'footer, .footer, #footer, [role="contentinfo"]'
NOISE_SELECTOR = (
    "script, style, noscript, iframe, .cookie, .popup, .modal, .ad, .advertisement"
)
CONTENT_SELECTORS = (
    "main",
    '[role="main"]',
    "article",
    ".content",
    ".main-content",
    "#content",
    "#main",
    ".page-content",
    "body",
)
FAQ_SECTION_SELECTORS = (
    ".faq",
    "#faq",
    ".faqs",
    "#faqs",
    ".frequently-asked-questions",
    '[class*="faq"]',
    '[id*="faq"]',
    ".accordion",
    '[class*="accordion"]',
    ".questions",
    ".qa",
    '[itemtype*="FAQPage"]',
    '[itemtype*="Question"]',
)
ACCORDION_ITEM_SELECTOR = ".accordion-item, .accordion__item, [class*=\"accordion-item\"]"
ACCORDION_QUESTION_SELECTOR = ".accordion-header, .accordion-title, button, h3, h4"
ACCORDION_ANSWER_SELECTOR = (
    ".accordion-body, .accordion-content, .accordion-panel, "
    '[class*="content"], [class*="body"]'
)

# (direct paths, keywords looked for in links on the front page)
PAGE_PROBES = {
    "faq_page": (
        ("/faq", "/ofte-stilte-sporsmal", "/sporsmal-og-svar", "/hjelp", "/help",
         "/support", "/kundeservice"),
        ("faq", "sporsmal", "hjelp", "help", "support"),
    ),
    "about_page": (
        ("/om-oss", "/about", "/about-us", "/om", "/hvem-er-vi", "/historie",
         "/var-historie"),
        ("om-oss", "about", "hvem", "historie"),
    ),
    "services_page": (
        ("/tjenester", "/services", "/hva-vi-gjor", "/losninger", "/solutions",
         "/tilbud"),
        ("tjeneste", "service", "losning", "solution", "tilbud"),
    ),
    "contact_page": (
        ("/kontakt", "/contact", "/kontakt-oss", "/contact-us", "/finn-oss"),
        ("kontakt", "contact", "finn-oss"),
    ),
    "pricing_page": (
        ("/priser", "/pricing", "/prisliste", "/prices", "/pakker", "/abonnement",
         "/plans"),
        ("pris", "price", "pakke", "abonnement", "plan", "cost", "kost"),
    ),
}

_WHITESPACE = re.compile(r"\s+")

logger = structlog.get_logger(__name__)


class ScrapeError(RuntimeError):
    """The page could not be fetched."""


@dataclass(frozen=True)
class ScrapedFAQ:
    question: str
    answer: str


@dataclass
class ScrapedContent:
    url: str
    title: str = ""
    meta_description: str = ""
    headings: List[str] = field(default_factory=list)
    main_content: str = ""
    links: List[str] = field(default_factory=list)
    footer_content: str = ""
    faq_content: str = ""
    raw_faqs: List[ScrapedFAQ] = field(default_factory=list)


@dataclass
class ScrapedSite:
    main: ScrapedContent
    faq_page: Optional[ScrapedContent] = None
    about_page: Optional[ScrapedContent] = None
    services_page: Optional[ScrapedContent] = None
    contact_page: Optional[ScrapedContent] = None
    pricing_page: Optional[ScrapedContent] = None


def clean_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def ensure_scheme(url: str) -> str:
    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    return f"https://{url}"


def _text(elements: Sequence[Tag]) -> str:
    return "".join(el.get_text() for el in elements).strip()


def _meta(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def _extract_faqs(soup: BeautifulSoup) -> tuple[str, List[ScrapedFAQ]]:
    sections: List[str] = []
    for selector in FAQ_SECTION_SELECTORS:
        for section in soup.select(selector):
            sections.append(section.get_text().strip())

    found: List[ScrapedFAQ] = []

    for item in soup.select('[itemtype*="Question"]'):
        question = _text(item.select('[itemprop="name"]'))
        answer = _text(item.select('[itemprop="acceptedAnswer"], [itemprop="text"]'))
        if question and answer:
            found.append(ScrapedFAQ(question, clean_text(answer)))

    for dl in soup.find_all("dl"):
        answers = dl.find_all("dd")
        for index, dt_tag in enumerate(dl.find_all("dt")):
            question = dt_tag.get_text().strip()
            answer = answers[index].get_text().strip() if index < len(answers) else ""
            if question and answer and len(question) < 200:
                found.append(ScrapedFAQ(question, clean_text(answer)))

    for item in soup.select(ACCORDION_ITEM_SELECTOR):
        question_tag = item.select_one(ACCORDION_QUESTION_SELECTOR)
        answer_tag = item.select_one(ACCORDION_ANSWER_SELECTOR)
        question = question_tag.get_text().strip() if question_tag else ""
        answer = answer_tag.get_text().strip() if answer_tag else ""
        if question and answer and len(question) < 200:
            found.append(ScrapedFAQ(question, clean_text(answer)))

    for heading in soup.find_all(["h2", "h3", "h4", "h5"]):
        text = heading.get_text().strip()
        if "?" not in text or len(text) >= 150:
            continue
        sibling = heading.find_next_sibling()
        if sibling is None or sibling.name not in ("p", "div"):
            continue
        answer = sibling.get_text().strip()
        if len(answer) > 20:
            found.append(ScrapedFAQ(text, clean_text(answer)))

    seen: set[str] = set()
    unique: List[ScrapedFAQ] = []
    for faq in found:
        key = faq.question.lower()[:50]
        if key in seen:
            continue
        seen.add(key)
        unique.append(faq)

    return clean_text("\n\n".join(sections)), unique[:MAX_RAW_FAQS]


def parse_html(html: str, url: str) -> ScrapedContent:
    """Extract the interesting parts of an HTML document fetched from ``url``."""

    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    first_h1 = soup.find("h1")
    title = (
        (title_tag.get_text().strip() if title_tag else "")
        or _meta(soup, property="og:title")
        or (first_h1.get_text().strip() if first_h1 else "")
    )
    meta_description = _meta(soup, name="description") or _meta(
        soup, property="og:description"
    )

    # Footer and FAQ markup are read before noise is stripped.
    footer_content = clean_text(
        " ".join(el.get_text().strip() for el in soup.select(FOOTER_SELECTOR))
    )
    faq_content, raw_faqs = _extract_faqs(soup)

    for element in soup.select(NOISE_SELECTOR):
        element.decompose()

    headings = []
    for heading in soup.find_all(["h1", "h2", "h3"]):
        text = heading.get_text().strip()
        if 2 < len(text) < 200:
            headings.append(text)

    main_content = ""
    for selector in CONTENT_SELECTORS:
        elements = soup.select(selector)
        if elements:
            main_content = _text(elements)
            if len(main_content) > 100:
                break
    main_content = clean_text(main_content)

    netloc = urlparse(url).netloc
    links: List[str] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith("#") or href.startswith("javascript:"):
            continue
        absolute = urljoin(url, href)
        if urlparse(absolute).netloc == netloc and absolute not in links:
            links.append(absolute)

    return ScrapedContent(
        url=url,
        title=title,
        meta_description=meta_description,
        headings=headings[:MAX_HEADINGS],
        main_content=main_content[:MAX_MAIN_CONTENT],
        links=links[:MAX_LINKS],
        footer_content=footer_content[:MAX_FOOTER_CONTENT],
        faq_content=faq_content[:MAX_FAQ_CONTENT],
        raw_faqs=raw_faqs,
    )


def format_for_analysis(content: ScrapedContent) -> str:
    """Render scraped content as the Norwegian text block sent to the AI."""

    parts: List[str] = []
    if content.title:
        parts.append(f"Tittel: {content.title}")
    if content.meta_description:
        parts.append(f"Meta-beskrivelse: {content.meta_description}")
    if content.headings:
        listed = "\n".join(f"- {heading}" for heading in content.headings)
        parts.append(f"Overskrifter på siden:\n{listed}")
    if content.main_content:
        parts.append(f"Hovedinnhold:\n{content.main_content}")
    if content.footer_content:
        parts.append(f"Footer/bunntekst:\n{content.footer_content}")
    if content.faq_content:
        parts.append(f"FAQ-seksjoner funnet:\n{content.faq_content}")
    if content.raw_faqs:
        pairs = "\n\n".join(
            f"{index}. Spørsmål: {faq.question}\n   Svar: {faq.answer}"
            for index, faq in enumerate(content.raw_faqs, start=1)
        )
        parts.append(f"Ekstraherte spørsmål og svar:\n{pairs}")
    return "\n\n".join(parts).strip()


class WebsiteScraper:
    def __init__(self, *, timeout: float = 15.0, http: requests.Session | None = None):
        self.timeout = timeout
        self.http = http or requests.Session()

    def fetch(self, url: str) -> str:
        try:
            response = self.http.get(url, headers=DEFAULT_HEADERS, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ScrapeError(f"Kunne ikke hente nettsiden: {exc}") from exc
        if not response.ok:
            raise ScrapeError(
                f"Kunne ikke hente nettsiden: {response.status_code} {response.reason or ''}".strip()
            )
        return response.text

    def scrape(self, url: str) -> ScrapedContent:
        url = ensure_scheme(url)
        return parse_html(self.fetch(url), url)

    def _probe(
        self,
        origin: str,
        main: ScrapedContent,
        paths: Sequence[str],
        keywords: Sequence[str],
    ) -> Optional[ScrapedContent]:
        candidates = [origin + path for path in paths]
        candidates.extend(
            link for link in main.links if any(kw in link.lower() for kw in keywords)
        )
        for url in candidates:
            try:
                page = self.scrape(url)
            except ScrapeError:
                continue
            if len(page.main_content) > MIN_PAGE_CONTENT or page.raw_faqs:
                return page
        return None

    def scrape_with_faq_page(self, base_url: str) -> ScrapedSite:
        """Scrape the front page plus FAQ, about, services, contact and pricing pages.

        Sub-pages are looked up by well-known paths first, then by links on
        the front page. Missing sub-pages are simply left out.
        """

        base_url = ensure_scheme(base_url)
        parsed = urlparse(base_url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        main = self.scrape(base_url)

        with ThreadPoolExecutor(max_workers=len(PAGE_PROBES)) as executor:
            futures = {
                name: executor.submit(self._probe, origin, main, paths, keywords)
                for name, (paths, keywords) in PAGE_PROBES.items()
            }
            pages = {name: future.result() for name, future in futures.items()}

        logger.info(
            "website_scraped",
            url=base_url,
            pages=[name for name, page in pages.items() if page is not None],
            raw_faqs=len(main.raw_faqs),
        )
        return ScrapedSite(main=main, **pages)
