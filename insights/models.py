"""
Pydantic models shared across the feedback-insights core.

Wire names follow the ingestion API (``painPoints``, ``originalId`` …);
Python attribute names are snake_case and both are accepted on input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import (
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    TypeAdapter,
    ValidationError,
    field_validator,
)

_URL_ADAPTER = TypeAdapter(AnyUrl)


class FeedbackItem(BaseModel):
    """A single piece of raw feedback, as received from an ingestion payload."""

    model_config = ConfigDict(frozen=True)

    id: StrictInt
    text: str
    source: str
    url: Optional[str] = None

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be empty")
        return value

    @field_validator("url")
    @classmethod
    def _url_well_formed(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            _URL_ADAPTER.validate_python(value)
        except ValidationError as exc:
            raise ValueError("url must be an absolute URL") from exc
        # The parsed URL is normalised; keep the original string as provenance.
        return value


class Priority(str, Enum):
    """Fixed priority taxonomy for an analysed item."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnalysisSuccess(BaseModel):
    """Structured insight extracted from one feedback item."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    pain_points: list[str] = Field(alias="painPoints")
    summary: str
    priority: Priority


class AnalysisFailure(BaseModel):
    """Why an item could not be analysed, with the model's raw output if any."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    error: str
    raw_output: Optional[Any] = Field(default=None, alias="rawOutput")


#: Exactly one of the two variants; check with ``isinstance``.
AnalysisOutcome = Union[AnalysisSuccess, AnalysisFailure]


class AnalysisResult(BaseModel):
    """Outcome of analysing one item, carrying the item's provenance."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    original_id: int = Field(alias="originalId")
    original_source: str = Field(alias="originalSource")
    original_url: Optional[str] = Field(default=None, alias="originalUrl")
    analysis: AnalysisOutcome

    @classmethod
    def for_item(cls, item: FeedbackItem, outcome: AnalysisOutcome) -> AnalysisResult:
        return cls(
            original_id=item.id,
            original_source=item.source,
            original_url=item.url,
            analysis=outcome,
        )

    @property
    def succeeded(self) -> bool:
        return isinstance(self.analysis, AnalysisSuccess)

    def to_wire(self) -> dict[str, Any]:
        """Serialise with API field names, omitting absent optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class IngestRequest(BaseModel):
    """Body of ``POST /api/mcp/ingest``."""

    feedback: list[FeedbackItem]


@dataclass(frozen=True)
class Batch:
    """One ingested set of items and their results, published as a unit.

    ``results[i]`` always belongs to ``items[i]``. ``generation`` increases
    with every publication; generation 0 is the empty batch the store starts
    with.
    """

    items: tuple[FeedbackItem, ...] = ()
    results: tuple[AnalysisResult, ...] = ()
    generation: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if len(self.items) != len(self.results):
            raise ValueError(
                f"Batch has {len(self.items)} items but {len(self.results)} results"
            )
        for index, (item, result) in enumerate(zip(self.items, self.results)):
            if result.original_id != item.id:
                raise ValueError(
                    f"Result {index} belongs to item {result.original_id}, "
                    f"expected {item.id}"
                )

    @property
    def is_empty(self) -> bool:
        return not self.results

    def to_wire(self) -> dict[str, Any]:
        return {"analyzedResults": [result.to_wire() for result in self.results]}
