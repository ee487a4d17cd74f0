"""
Core data models for the changelog crawler.

Persisted documents use camelCase keys (``lastScraped``, ``sourceSection``)
so the JSON files stay readable by the dashboard; Python code uses the
snake_case attribute names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def dedupe_casefold(values: List[str]) -> List[str]:
    """Drop case-insensitive duplicates, keeping the first spelling."""
    seen = set()
    out: List[str] = []
    for value in values:
        value = value.strip()
        key = value.casefold()
        if not value or key in seen:
            continue
        seen.add(key)
        out.append(value)
    return out


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class UpdateType(str, Enum):
    FEATURE = "feature"
    PRICING = "pricing"
    BUGFIX = "bugfix"
    IMPROVEMENT = "improvement"
    BREAKING = "breaking"
    SECURITY = "security"
    PERFORMANCE = "performance"


class ExtractionStrategy(str, Enum):
    """Which extraction path produced a raw update."""
    PRIMARY = "primary"
    FALLBACK = "fallback"
    PROBE = "probe"


class RawUpdate(BaseModel):
    """Candidate update as read from the DOM, before classification."""
    title: str
    raw_date: str = ""
    raw_description: str = ""
    strategy: ExtractionStrategy = ExtractionStrategy.PRIMARY
    section: str = ""
    tags: List[str] = Field(default_factory=list)


class UpdateMetadata(CamelModel):
    source_section: str = ""
    affected_services: List[str] = Field(default_factory=list)

    @field_validator("affected_services")
    @classmethod
    def _dedupe_services(cls, v: List[str]) -> List[str]:
        return dedupe_casefold(v)


class ClassifiedUpdate(CamelModel):
    title: str
    date: str
    type: UpdateType = UpdateType.IMPROVEMENT
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    metadata: UpdateMetadata = Field(default_factory=UpdateMetadata)
    url: str = ""

    @field_validator("title")
    @classmethod
    def _title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be empty")
        return v

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, v: List[str]) -> List[str]:
        return dedupe_casefold(v)


class SourceRecord(CamelModel):
    """Persisted unit, one per tracked source."""
    competitor: str
    updates: List[ClassifiedUpdate] = Field(default_factory=list)
    last_scraped: datetime = Field(default_factory=utcnow)
    success: bool = True


class RefreshState(str, Enum):
    NOT_STARTED = "not_started"
    PROBE_SKIP = "probe_skip"
    PROBE_PROCEED = "probe_proceed"
    FULL_CRAWL_DONE = "full_crawl_done"


class RefreshOutcome(BaseModel):
    """Result of one source refresh.

    ``record`` is the merged record on success. On failure it is the record
    that existed before the attempt (possibly ``None``), untouched.
    """
    source: str
    state: RefreshState = RefreshState.NOT_STARTED
    record: Optional[SourceRecord] = None
    success: bool = False
    new_updates: int = 0
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.state == RefreshState.PROBE_SKIP


class SourceReport(BaseModel):
    source: str
    success: bool
    update_count: int = 0
    new_updates: int = 0
    duration_ms: int = 0
    state: RefreshState = RefreshState.NOT_STARTED
    skipped: bool = False
    error: Optional[str] = None


class RunSummary(BaseModel):
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    total_updates: int = 0


class CrawlReport(BaseModel):
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    sources: List[SourceReport] = Field(default_factory=list)
    # successful records by source id, not serialised into the run log
    records: Dict[str, SourceRecord] = Field(default_factory=dict, exclude=True)

    @property
    def summary(self) -> RunSummary:
        ok = [r for r in self.sources if r.success]
        return RunSummary(
            total=len(self.sources),
            succeeded=len(ok),
            failed=len(self.sources) - len(ok),
            total_updates=sum(r.update_count for r in ok),
        )

    @property
    def all_failed(self) -> bool:
        return bool(self.sources) and not any(r.success for r in self.sources)


class CompanyRunResult(BaseModel):
    name: str
    success: bool
    updates: int = 0
    error: Optional[str] = None


class RunLogEntry(CamelModel):
    """One line of the rolling crawl log."""
    timestamp: datetime = Field(default_factory=utcnow)
    total_companies: int = 0
    successful_scrapes: int = 0
    failed_scrapes: int = 0
    total_updates: int = 0
    companies: List[CompanyRunResult] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: CrawlReport) -> "RunLogEntry":
        summary = report.summary
        return cls(
            timestamp=report.finished_at or utcnow(),
            total_companies=summary.total,
            successful_scrapes=summary.succeeded,
            failed_scrapes=summary.failed,
            total_updates=summary.total_updates,
            companies=[
                CompanyRunResult(
                    name=r.source,
                    success=r.success,
                    updates=r.update_count,
                    error=r.error,
                )
                for r in report.sources
            ],
        )


class ApiResponse(CamelModel):
    success: bool
    data: Any = None
    error: Optional[str] = None
    from_cache: bool = False
    timestamp: datetime = Field(default_factory=utcnow)
