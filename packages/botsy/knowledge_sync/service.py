"""Website knowledge sync: keeps website-derived FAQs in step with the site.

A sync run scrapes the company website, extracts FAQs (markup first, then
the AI), matches them against stored FAQs and then:

- creates FAQs the website has that the company does not,
- records a conflict when the website disagrees with a manual FAQ,
- refreshes ``website_last_seen`` on website FAQs that still match,
- flags website FAQs the site no longer mentions as possibly outdated.
"""

from __future__ import annotations

import hashlib
import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import and_, desc, func, select
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session

from ..ai_providers import AIMessage, AIResponse
from ..audit import AuditEvent, AuditLogger
from ..models import (
    FAQ,
    Company,
    ConflictStatus,
    FAQSource,
    KnowledgeConflict,
    SyncConfiguration,
    SyncJobStatus,
    WebsiteSyncJob,
    utcnow,
)
from .scraper import ScrapedSite, WebsiteScraper, ensure_scheme, format_for_analysis
from .similarity import calculate_similarity, is_similar_content

__all__ = [
    "CONFIG_DEFAULTS",
    "ExtractedFAQ",
    "KnowledgeSyncService",
    "RESOLUTIONS",
    "SyncResult",
]

AIGenerator = Callable[..., AIResponse]

CONFIG_DEFAULTS: Dict[str, Any] = {
    "enabled": False,
    "website_url": "",
    "sync_interval_hours": 1,
    "auto_approve_website_faqs": False,
    "notify_on_conflicts": True,
    "notify_on_new_faqs": True,
}
CONFIG_FIELDS = frozenset(CONFIG_DEFAULTS)

RESOLUTIONS = {
    "keep_current": ConflictStatus.RESOLVED_KEEP_CURRENT,
    "use_website": ConflictStatus.RESOLVED_USE_WEBSITE,
    "merge": ConflictStatus.RESOLVED_MERGED,
    "keep_both": ConflictStatus.RESOLVED_KEEP_BOTH,
    "dismiss": ConflictStatus.DISMISSED,
}

WEBSITE_SOURCES = (FAQSource.WEBSITE, FAQSource.WEBSITE_AUTO)
PROTECTED_SOURCES = (FAQSource.MANUAL, FAQSource.USER)

RAW_FAQ_CONFIDENCE = 0.9
FAQ_PAGE_CONFIDENCE = 0.95
AI_FAQ_CONFIDENCE = 0.7
DUPLICATE_THRESHOLD = 0.7
MATCH_THRESHOLD = 0.7
CANDIDATE_THRESHOLD = 0.5
AI_CONTENT_LIMIT = 8000
RECENT_JOBS_LIMIT = 10

EXTRACTION_PROMPT = """Du er en ekspert på å analysere nettsideinnhold og ekstrahere FAQ-informasjon.

Din oppgave er å analysere innholdet og finne informasjon som kan formuleres som spørsmål og svar (FAQs).

REGLER:
1. Ekstraher BARE informasjon som faktisk finnes i innholdet - ALDRI finn på noe
2. Formuler naturlige spørsmål som kunder typisk ville stille
3. Svarene skal være konsise men komplette
4. Ignorer navigasjon, menyer, og generisk tekst
5. Fokuser på: åpningstider, priser, tjenester, kontaktinfo, policies, etc.
6. Maksimalt 15 FAQs

Svar i JSON-format:
{
  "faqs": [
    {
      "question": "Spørsmålet",
      "answer": "Svaret",
      "confidence": 0.9
    }
  ]
}"""

MATCH_PROMPT = """Du skal avgjøre om to spørsmål handler om det SAMME temaet.
Svar BARE med "JA" eller "NEI".

Eksempler:
- "Hva er åpningstidene?" og "Når har dere åpent?" = JA (samme tema)
- "Hva koster det?" og "Har dere prisliste?" = JA (samme tema)
- "Hvor ligger dere?" og "Hva er åpningstidene?" = NEI (forskjellige temaer)"""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExtractedFAQ:
    question: str
    answer: str
    source_url: str
    confidence: float


@dataclass
class SyncResult:
    success: bool
    job_id: str = ""
    total_faqs_on_website: int = 0
    new_faqs_created: int = 0
    conflicts_created: int = 0
    faqs_updated: int = 0
    faqs_marked_outdated: int = 0
    content_changed: bool = False
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class _ResolvedConfig:
    website_url: str
    auto_approve: bool
    last_content_hash: Optional[str]


def content_hash(site: ScrapedSite) -> str:
    return hashlib.md5(format_for_analysis(site.main).encode("utf-8")).hexdigest()


class KnowledgeSyncService:
    def __init__(
        self,
        session: Session,
        *,
        ai: AIGenerator | None = None,
        scraper: WebsiteScraper | None = None,
        audit: AuditLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.ai = ai
        self.scraper = scraper or WebsiteScraper()
        self.audit = audit
        self._clock = clock

    # ========================================================================
    # Configuration
    # ========================================================================

    def get_config(self, company_id: str) -> Optional[SyncConfiguration]:
        return self.session.get(SyncConfiguration, company_id)

    def update_config(
        self, company_id: str, changes: Dict[str, Any], *, actor_id: str
    ) -> SyncConfiguration:
        """Merge ``changes`` into the company's sync configuration."""

        unknown = set(changes) - CONFIG_FIELDS
        if unknown:
            raise ValueError(f"Unknown sync settings: {', '.join(sorted(unknown))}")
        nulls = sorted(key for key, value in changes.items() if value is None)
        if nulls:
            raise ValueError(f"Sync settings cannot be null: {', '.join(nulls)}")
        if self.session.get(Company, company_id) is None:
            raise LookupError("Company not found")

        config = self._ensure_config(company_id)
        for key, value in changes.items():
            if key == "website_url" and value:
                value = ensure_scheme(value)
            if key == "sync_interval_hours" and int(value) < 1:
                raise ValueError("sync_interval_hours must be at least 1")
            setattr(config, key, value)
        if self.audit is not None:
            self.audit.log(
                AuditEvent(
                    action="settings.updated",
                    actor=actor_id,
                    company_id=company_id,
                    resource_type="sync_configuration",
                    resource_id=company_id,
                    metadata={"fields": sorted(changes)},
                )
            )
        self.session.commit()
        return config

    def _ensure_config(self, company_id: str) -> SyncConfiguration:
        config = self.session.get(SyncConfiguration, company_id)
        if config is None:
            config = SyncConfiguration(company_id=company_id, **CONFIG_DEFAULTS)
            self.session.add(config)
        return config

    # ========================================================================
    # Jobs
    # ========================================================================

    def recent_jobs(self, company_id: str, limit: int = RECENT_JOBS_LIMIT) -> List[WebsiteSyncJob]:
        return list(
            self.session.execute(
                select(WebsiteSyncJob)
                .where(WebsiteSyncJob.company_id == company_id)
                .order_by(desc(WebsiteSyncJob.started_at))
                .limit(limit)
            ).scalars()
        )

    def get_job(self, company_id: str, job_id: str) -> WebsiteSyncJob:
        job = self.session.get(WebsiteSyncJob, job_id)
        if job is None or job.company_id != company_id:
            raise NoResultFound("Sync job not found")
        return job

    # ========================================================================
    # Conflicts
    # ========================================================================

    def list_conflicts(
        self, company_id: str, status: ConflictStatus | None = None
    ) -> List[KnowledgeConflict]:
        stmt = select(KnowledgeConflict).where(KnowledgeConflict.company_id == company_id)
        if status is not None:
            stmt = stmt.where(KnowledgeConflict.status == status)
        return list(
            self.session.execute(stmt.order_by(desc(KnowledgeConflict.created_at))).scalars()
        )

    def pending_conflicts_count(self, company_id: str) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(KnowledgeConflict)
            .where(
                and_(
                    KnowledgeConflict.company_id == company_id,
                    KnowledgeConflict.status == ConflictStatus.PENDING,
                )
            )
        ).scalar_one()

    def get_conflict(self, company_id: str, conflict_id: str) -> KnowledgeConflict:
        conflict = self.session.get(KnowledgeConflict, conflict_id)
        if conflict is None or conflict.company_id != company_id:
            raise NoResultFound("Conflict not found")
        return conflict

    def resolve_conflict(
        self,
        company_id: str,
        conflict_id: str,
        resolution: str,
        *,
        resolved_by: str,
        note: str | None = None,
    ) -> ConflictStatus:
        """Apply ``resolution`` to the conflicting FAQ and close the conflict.

        ``merge`` appends the website answer below the current one;
        ``keep_both`` stores the website version as a separate confirmed FAQ.
        """

        status = RESOLUTIONS.get(resolution)
        if status is None:
            raise ValueError("Invalid resolution type")
        conflict = self.get_conflict(company_id, conflict_id)
        if conflict.status != ConflictStatus.PENDING:
            raise ValueError("Conflict is already resolved")

        faq = self.session.get(FAQ, conflict.faq_id)
        if resolution in ("use_website", "merge") and faq is None:
            raise NoResultFound("FAQ not found")

        if resolution == "use_website":
            faq.question = conflict.website_question
            faq.answer = conflict.website_answer
            faq.website_last_seen = utcnow()
        elif resolution == "merge":
            faq.answer = f"{conflict.current_answer}\n\n---\n\n{conflict.website_answer}"
        elif resolution == "keep_both":
            self.session.add(
                FAQ(
                    company_id=company_id,
                    question=conflict.website_question,
                    answer=conflict.website_answer,
                    source=FAQSource.WEBSITE,
                    confirmed=True,
                    website_url=conflict.website_url,
                    website_last_seen=utcnow(),
                )
            )

        conflict.status = status
        conflict.resolved_by = resolved_by
        conflict.resolved_at = utcnow()
        conflict.resolution_note = note or ""
        if self.audit is not None:
            self.audit.log(
                AuditEvent(
                    action="conflict.resolved",
                    actor=resolved_by,
                    company_id=company_id,
                    resource_type="knowledge_conflict",
                    resource_id=conflict_id,
                    metadata={"resolution": status.value, "faq_id": conflict.faq_id},
                )
            )
        self.session.commit()
        return status

    # ========================================================================
    # Sync run
    # ========================================================================

    def _resolve_config(self, company_id: str) -> _ResolvedConfig | str:
        config = self.get_config(company_id)
        if config is not None and config.enabled and config.website_url:
            return _ResolvedConfig(
                website_url=config.website_url,
                auto_approve=config.auto_approve_website_faqs,
                last_content_hash=config.last_content_hash,
            )

        company = self.session.get(Company, company_id)
        if company is None:
            return "Company not found"
        website_url = company.website_url or (company.business_profile or {}).get("websiteUrl")
        if not website_url:
            return "No website URL configured for this company"
        # Manually triggered runs without a config trust the owner's own site.
        return _ResolvedConfig(
            website_url=ensure_scheme(website_url),
            auto_approve=True,
            last_content_hash=config.last_content_hash if config else None,
        )

    def run_website_sync(self, company_id: str) -> SyncResult:
        resolved = self._resolve_config(company_id)
        if isinstance(resolved, str):
            logger.info("website_sync_skipped", company_id=company_id, reason=resolved)
            return SyncResult(success=False, errors=[resolved])

        job = WebsiteSyncJob(company_id=company_id, website_url=resolved.website_url)
        self.session.add(job)
        self.session.commit()
        job.status = SyncJobStatus.RUNNING
        self.session.commit()
        job_id = job.id
        started = self._clock()
        logger.info("website_sync_started", company_id=company_id, job_id=job_id)

        try:
            result = self._sync(company_id, job, resolved, started)
        except Exception as exc:  # noqa: BLE001 - the job records any failure
            self.session.rollback()
            message = str(exc) or exc.__class__.__name__
            logger.exception("website_sync_failed", company_id=company_id, job_id=job_id)
            job = self.session.get(WebsiteSyncJob, job_id)
            job.status = SyncJobStatus.FAILED
            job.error = message
            job.completed_at = utcnow()
            job.duration_ms = int((self._clock() - started) * 1000)
            self.session.commit()
            return SyncResult(success=False, job_id=job_id, errors=[message])

        logger.info(
            "website_sync_completed",
            company_id=company_id,
            job_id=job_id,
            new=result.new_faqs_created,
            conflicts=result.conflicts_created,
            updated=result.faqs_updated,
            outdated=result.faqs_marked_outdated,
        )
        return result

    def _sync(
        self,
        company_id: str,
        job: WebsiteSyncJob,
        config: _ResolvedConfig,
        started: float,
    ) -> SyncResult:
        site = self.scraper.scrape_with_faq_page(config.website_url)
        digest = content_hash(site)
        result = SyncResult(
            success=True,
            job_id=job.id,
            content_changed=digest != config.last_content_hash,
        )

        extracted = self.extract_faqs(site, config.website_url, warnings=result.warnings)
        result.total_faqs_on_website = len(extracted)

        existing = list(
            self.session.execute(select(FAQ).where(FAQ.company_id == company_id)).scalars()
        )
        seen: set[str] = set()
        now = utcnow()

        for item in extracted:
            match = self.find_match(item, existing)
            if match is None:
                auto = config.auto_approve
                self.session.add(
                    FAQ(
                        company_id=company_id,
                        question=item.question,
                        answer=item.answer,
                        source=FAQSource.WEBSITE_AUTO if auto else FAQSource.WEBSITE,
                        confirmed=auto,
                        website_url=item.source_url,
                        website_last_seen=now,
                        auto_generated=True,
                    )
                )
                result.new_faqs_created += 1
                continue

            seen.add(match.id)
            if is_similar_content(item.answer, match.answer):
                match.website_last_seen = now
                match.possibly_outdated = False
            elif match.source in PROTECTED_SOURCES:
                self.session.add(
                    KnowledgeConflict(
                        company_id=company_id,
                        faq_id=match.id,
                        current_question=match.question,
                        current_answer=match.answer,
                        current_source=match.source,
                        website_question=item.question,
                        website_answer=item.answer,
                        website_url=item.source_url,
                        similarity_score=item.confidence,
                    )
                )
                result.conflicts_created += 1
            else:
                match.website_last_seen = now
                match.possibly_outdated = False
                result.faqs_updated += 1

        for faq in existing:
            if faq.source in WEBSITE_SOURCES and faq.id not in seen:
                faq.possibly_outdated = True
                result.faqs_marked_outdated += 1

        job.status = SyncJobStatus.COMPLETED
        job.new_faqs_found = result.new_faqs_created
        job.conflicts_found = result.conflicts_created
        job.faqs_updated = result.faqs_updated
        job.faqs_marked_outdated = result.faqs_marked_outdated
        job.completed_at = utcnow()
        job.duration_ms = int((self._clock() - started) * 1000)
        job.content_hash = digest

        stored = self._ensure_config(company_id)
        stored.last_sync_at = job.completed_at
        stored.last_sync_job_id = job.id
        stored.last_content_hash = digest
        self.session.commit()
        return result

    # ========================================================================
    # Extraction and matching
    # ========================================================================

    def extract_faqs(
        self,
        site: ScrapedSite,
        base_url: str,
        *,
        warnings: List[str] | None = None,
    ) -> List[ExtractedFAQ]:
        faqs = [
            ExtractedFAQ(raw.question, raw.answer, base_url, RAW_FAQ_CONFIDENCE)
            for raw in site.main.raw_faqs
        ]
        if site.faq_page is not None:
            faqs.extend(
                ExtractedFAQ(raw.question, raw.answer, site.faq_page.url, FAQ_PAGE_CONFIDENCE)
                for raw in site.faq_page.raw_faqs
            )

        content = format_for_analysis(site.main)
        if site.faq_page is not None:
            content += "\n\n--- FAQ-SIDE ---\n" + format_for_analysis(site.faq_page)
        if site.about_page is not None:
            content += "\n\n--- OM OSS-SIDE ---\n" + format_for_analysis(site.about_page)

        try:
            ai_faqs = self._extract_with_ai(content, base_url)
        except RuntimeError as exc:
            logger.warning("ai_faq_extraction_failed", error=str(exc))
            if warnings is not None:
                warnings.append(str(exc))
            return faqs

        for candidate in ai_faqs:
            duplicate = any(
                calculate_similarity(existing.question, candidate.question) > DUPLICATE_THRESHOLD
                for existing in faqs
            )
            if not duplicate:
                faqs.append(candidate)
        return faqs

    def _extract_with_ai(self, content: str, source_url: str) -> List[ExtractedFAQ]:
        if self.ai is None:
            raise RuntimeError("AI extraction unavailable")
        message = f"Analyser dette innholdet og ekstraher FAQs:\n\n{content[:AI_CONTENT_LIMIT]}"
        result = self.ai(
            EXTRACTION_PROMPT,
            [AIMessage("user", message)],
            max_tokens=2000,
            temperature=0.3,
        )
        if not result.success:
            raise RuntimeError("AI extraction failed")
        return parse_extracted_faqs(result.response, source_url)

    def find_match(self, item: ExtractedFAQ, existing: Sequence[FAQ]) -> Optional[FAQ]:
        """Find the stored FAQ asking the same thing as ``item``, if any.

        The best stored question scoring above 0.5 on word overlap is the
        match. Between 0.5 and 0.7 the AI is asked first, but its answer only
        logs a disagreement. Without any candidate every stored FAQ is checked
        with the AI.
        """

        best: Optional[FAQ] = None
        best_score = 0.0
        for faq in existing:
            score = calculate_similarity(item.question, faq.question)
            if score > best_score and score > CANDIDATE_THRESHOLD:
                best, best_score = faq, score

        if best is not None:
            if best_score > MATCH_THRESHOLD:
                return best
            if not self._same_topic(item.question, best.question):
                logger.info("faq_match_unconfirmed", question=item.question, score=best_score)
            return best

        for faq in existing:
            if self._same_topic(item.question, faq.question):
                return faq
        return None

    def _same_topic(self, first: str, second: str) -> bool:
        if self.ai is None:
            return False
        message = (
            f'Spørsmål 1: "{first}"\nSpørsmål 2: "{second}"\n\n'
            "Handler disse om SAMME tema?"
        )
        try:
            result = self.ai(
                MATCH_PROMPT, [AIMessage("user", message)], max_tokens=10, temperature=0
            )
        except Exception:  # noqa: BLE001 - an unanswered check means no match
            logger.exception("ai_topic_match_failed")
            return False
        return bool(result.success) and "JA" in result.response.upper()


def parse_extracted_faqs(response: str, source_url: str) -> List[ExtractedFAQ]:
    """Parse the ``{"faqs": [...]}`` object embedded in an AI reply."""

    found = _JSON_OBJECT.search(response or "")
    if found is None:
        return []
    try:
        payload = json.loads(found.group(0))
    except ValueError:
        logger.warning("ai_faq_response_unparseable")
        return []

    faqs: List[ExtractedFAQ] = []
    for entry in payload.get("faqs") or []:
        if not isinstance(entry, dict):
            continue
        question = str(entry.get("question") or "").strip()
        answer = str(entry.get("answer") or "").strip()
        if not question or not answer:
            continue
        confidence = entry.get("confidence") or AI_FAQ_CONFIDENCE
        faqs.append(ExtractedFAQ(question, answer, source_url, float(confidence)))
    return faqs
