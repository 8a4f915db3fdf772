from .scraper import ScrapeError, ScrapedContent, ScrapedFAQ, ScrapedSite, WebsiteScraper
from .service import ExtractedFAQ, KnowledgeSyncService, SyncResult
from .similarity import calculate_similarity, is_similar_content

__all__ = [
    "ExtractedFAQ",
    "KnowledgeSyncService",
    "ScrapeError",
    "ScrapedContent",
    "ScrapedFAQ",
    "ScrapedSite",
    "SyncResult",
    "WebsiteScraper",
    "calculate_similarity",
    "is_similar_content",
]
