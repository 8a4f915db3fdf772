import pytest

from packages.botsy.knowledge_sync import ScrapeError, WebsiteScraper, calculate_similarity
from packages.botsy.knowledge_sync.scraper import (
    USER_AGENT,
    ScrapedContent,
    ScrapedFAQ,
    ensure_scheme,
    format_for_analysis,
    parse_html,
)
from packages.botsy.knowledge_sync.similarity import is_similar_content

from .helpers import FakeHTTP, FakeResponse


class SiteHTTP:
    """Serves fixed pages by exact URL; anything else is a 404."""

    def __init__(self, pages):
        self.pages = pages

    def get(self, url, **kwargs):
        if url in self.pages:
            return FakeResponse(200, text=self.pages[url])
        return FakeResponse(404, reason="Not Found")


FRONT_PAGE = """
<html>
  <head>
    <title>Acme Frisør</title>
    <meta name="description" content="Frisør i sentrum av Oslo">
    <script>var tracking = true;</script>
  </head>
  <body>
    <nav><a href="/om-oss">Om oss</a> <a href="https://other.no/x">Ekstern</a>
      <a href="#top">Topp</a> <a href="javascript:void(0)">JS</a></nav>
    <main>
      <h1>Velkommen til Acme Frisør</h1>
      <p>Vi tilbyr klipp, farge og styling for hele familien. Timebestilling skjer
         enkelt på nett eller per telefon, og vi har åpent seks dager i uken.</p>
      <h2>Hva koster en herreklipp?</h2>
      <p>En herreklipp koster 450 kroner inkludert vask.</p>
      <dl>
        <dt>Tar dere kort?</dt><dd>Ja, vi tar alle vanlige kort og Vipps.</dd>
      </dl>
      <div class="accordion">
        <div class="accordion-item">
          <button>Har dere parkering?</button>
          <div class="accordion-body">Ja, i bakgården.</div>
        </div>
      </div>
    </main>
    <footer>Acme Frisør AS · Storgata 1, Oslo · 22 33 44 55</footer>
  </body>
</html>
"""


def test_parse_html_extracts_page_parts():
    content = parse_html(FRONT_PAGE, "https://acme.no/")

    assert content.title == "Acme Frisør"
    assert content.meta_description == "Frisør i sentrum av Oslo"
    assert "Velkommen til Acme Frisør" in content.headings
    assert "klipp, farge og styling" in content.main_content
    assert "tracking" not in content.main_content
    assert content.links == ["https://acme.no/om-oss"]
    assert "Storgata 1" in content.footer_content
    assert "Har dere parkering?" in content.faq_content


def test_links_stay_on_the_same_host():
    html = (
        '<a href="https://acme.no.evil.com/faq">Lure</a>'
        '<a href="https://acme.no:8443/admin">Port</a>'
        '<a href="mailto:post@acme.no">Post</a>'
        '<a href="/kontakt">Kontakt</a>'
        '<a href="https://acme.no/faq?lang=no">FAQ</a>'
    )

    content = parse_html(html, "https://acme.no/")

    assert content.links == ["https://acme.no/kontakt", "https://acme.no/faq?lang=no"]


def test_parse_html_finds_faq_markup():
    faqs = parse_html(FRONT_PAGE, "https://acme.no/").raw_faqs

    by_question = {faq.question: faq.answer for faq in faqs}
    assert by_question["Tar dere kort?"] == "Ja, vi tar alle vanlige kort og Vipps."
    assert by_question["Har dere parkering?"] == "Ja, i bakgården."
    assert by_question["Hva koster en herreklipp?"].startswith("En herreklipp koster 450")


def test_schema_org_questions_are_deduplicated():
    html = """
    <div itemscope itemtype="https://schema.org/FAQPage">
      <div itemscope itemprop="mainEntity" itemtype="https://schema.org/Question">
        <h3 itemprop="name">Når åpner dere?</h3>
        <div itemprop="acceptedAnswer"><p>Klokken 09:00   hver dag.</p></div>
      </div>
      <div itemscope itemprop="mainEntity" itemtype="https://schema.org/Question">
        <h3 itemprop="name">NÅR ÅPNER DERE?</h3>
        <div itemprop="acceptedAnswer"><p>Duplikat</p></div>
      </div>
    </div>
    """

    faqs = parse_html(html, "https://acme.no").raw_faqs

    assert faqs == [ScrapedFAQ("Når åpner dere?", "Klokken 09:00 hver dag.")]


def test_format_for_analysis_uses_norwegian_labels():
    text = format_for_analysis(
        ScrapedContent(
            url="https://acme.no",
            title="Acme",
            headings=["Tjenester"],
            raw_faqs=[ScrapedFAQ("Spørsmål?", "Svar.")],
        )
    )

    assert text.startswith("Tittel: Acme")
    assert "Overskrifter på siden:\n- Tjenester" in text
    assert "1. Spørsmål: Spørsmål?\n   Svar: Svar." in text


def test_ensure_scheme():
    assert ensure_scheme("acme.no") == "https://acme.no"
    assert ensure_scheme(" http://acme.no ") == "http://acme.no"


def test_fetch_sends_botsy_user_agent_and_reports_failures():
    http = FakeHTTP({"acme.no": FakeResponse(200, text=FRONT_PAGE)})
    scraper = WebsiteScraper(http=http)

    content = scraper.scrape("acme.no")

    assert content.url == "https://acme.no"
    assert http.requests[0][2]["headers"]["User-Agent"] == USER_AGENT

    broken = WebsiteScraper(http=FakeHTTP({"acme.no": FakeResponse(503, reason="Unavailable")}))
    with pytest.raises(ScrapeError, match="Kunne ikke hente nettsiden: 503 Unavailable"):
        broken.fetch("https://acme.no")


def test_scrape_with_faq_page_probes_sub_pages():
    faq_page = "<main><dl><dt>Kan jeg avbestille?</dt><dd>Ja, inntil 24 timer før.</dd></dl></main>"
    http = SiteHTTP(
        {
            "https://acme.no": FRONT_PAGE,
            "https://acme.no/faq": faq_page,
            "https://acme.no/om-oss": "<main>" + "Om oss. " * 40 + "</main>",
        }
    )

    site = WebsiteScraper(http=http).scrape_with_faq_page("https://acme.no")

    assert site.main.title == "Acme Frisør"
    assert site.faq_page.url == "https://acme.no/faq"
    assert site.faq_page.raw_faqs[0].question == "Kan jeg avbestille?"
    assert site.about_page.url == "https://acme.no/om-oss"
    assert site.pricing_page is None


def test_similarity():
    assert calculate_similarity("Hva koster det?", "hva koster det?") == 1.0
    assert calculate_similarity("", "noe") == 0.0
    assert calculate_similarity("a b", "c d") == 0.0
    assert calculate_similarity(
        "Hva er åpningstidene deres", "Hva er åpningstidene i helgen"
    ) == pytest.approx(2 / 3)
    assert is_similar_content("Vi har åpent fra ni til fire", "vi har åpent fra ni til fire")
    assert not is_similar_content("Vi har åpent fra ni", "Stengt hele sommeren")
