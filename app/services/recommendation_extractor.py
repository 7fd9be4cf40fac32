from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Union

from pydantic import ValidationError

from app.core.config.tables import ExtractionTables, get_extraction_tables
from app.schemas.quiz import Analysis
from app.schemas.recommendations import CareerRecord, TraitRecord

logger = logging.getLogger(__name__)

MAX_CAREERS = 5
MATCH_RANGE = (70, 99)


@dataclass(frozen=True)
class StructuredAnalysis:
    analysis: Analysis
    kind: Literal["structured"] = "structured"


@dataclass(frozen=True)
class LegacyAnalysis:
    text: str
    kind: Literal["legacy"] = "legacy"


AnalysisSource = Union[StructuredAnalysis, LegacyAnalysis]


def analysis_source(value: Any) -> AnalysisSource | None:
    """Tag a stored analysis as structured or legacy free text."""
    if value is None:
        return None
    if isinstance(value, Analysis):
        return StructuredAnalysis(value)
    if isinstance(value, str):
        return LegacyAnalysis(value)
    if isinstance(value, dict):
        try:
            return StructuredAnalysis(Analysis.model_validate(value))
        except ValidationError:
            return LegacyAnalysis(json.dumps(value, ensure_ascii=False, default=str))
    return None


def _lookup_emoji(name: str, emojis: Mapping[str, str], default: str, *, two_way: bool) -> str:
    normalized = name.strip().lower()
    if not normalized:
        return default
    for key, emoji in emojis.items():
        if normalized == key.lower():
            return emoji
    for key, emoji in emojis.items():
        lowered = key.lower()
        if lowered in normalized or (two_way and normalized in lowered):
            return emoji
    return default


class RecommendationExtractor:
    """Derives emoji-annotated trait and career lists from a stored analysis.

    Structured analyses pass their own lists through. Legacy text, and
    structured analyses without the relevant list, are scanned for a fixed
    set of keywords. Failures produce an empty list; callers supply defaults.
    """

    def __init__(self, tables: ExtractionTables | None = None, rng: random.Random | None = None) -> None:
        self._tables = tables or get_extraction_tables()
        self._rng = rng or random.Random()

    def trait_emoji(self, trait: str) -> str:
        return _lookup_emoji(trait, self._tables.trait_emojis, self._tables.default_trait_emoji, two_way=True)

    def career_emoji(self, career: str) -> str:
        return _lookup_emoji(career, self._tables.career_emojis, self._tables.default_career_emoji, two_way=False)

    def _match_percentage(self) -> int:
        low, high = MATCH_RANGE
        return self._rng.randint(low, high)

    def traits(self, value: Any) -> list[TraitRecord]:
        try:
            source = value if isinstance(value, (StructuredAnalysis, LegacyAnalysis)) else analysis_source(value)
            if source is None:
                logger.warning("trait_extraction_skipped reason=no_analysis")
                return []
            if source.kind == "structured" and source.analysis.personality_traits:
                return [self._trait_record(entry) for entry in source.analysis.personality_traits]
            return self._scan_traits(self._text_of(source))
        except Exception as exc:  # noqa: BLE001 - callers fall back to their own defaults
            logger.error("trait_extraction_failed: %s", exc, exc_info=True)
            return []

    def careers(self, value: Any) -> list[CareerRecord]:
        try:
            source = value if isinstance(value, (StructuredAnalysis, LegacyAnalysis)) else analysis_source(value)
            if source is None:
                logger.warning("career_extraction_skipped reason=no_analysis")
                return []
            if source.kind == "structured" and source.analysis.top_career_areas:
                records = [self._career_record(entry) for entry in source.analysis.top_career_areas]
                return records[:MAX_CAREERS]
            return self._scan_careers(self._text_of(source))[:MAX_CAREERS]
        except Exception as exc:  # noqa: BLE001 - callers fall back to their own defaults
            logger.error("career_extraction_failed: %s", exc, exc_info=True)
            return []

    @staticmethod
    def _text_of(source: AnalysisSource) -> str:
        if source.kind == "legacy":
            return source.text
        return source.analysis.model_dump_json()

    def _trait_record(self, entry: Any) -> TraitRecord:
        if isinstance(entry, dict) and entry.get("trait"):
            payload = dict(entry)
            payload.setdefault("emoji", self.trait_emoji(str(entry["trait"])))
            return TraitRecord.model_validate(payload)
        trait = str(entry)
        return TraitRecord(
            emoji=self.trait_emoji(trait),
            trait=trait,
            description=f"Shows strong {trait} tendencies",
        )

    def _career_record(self, entry: Any) -> CareerRecord:
        if isinstance(entry, dict) and entry.get("career"):
            payload = dict(entry)
            payload.setdefault("emoji", self.career_emoji(str(entry["career"])))
            if "match_percentage" not in payload and "matchPercentage" not in payload:
                payload["match_percentage"] = self._match_percentage()
            return CareerRecord.model_validate(payload)
        career = str(entry)
        return CareerRecord(
            emoji=self.career_emoji(career),
            career=career,
            match_percentage=self._match_percentage(),
        )

    def _scan_traits(self, text: str) -> list[TraitRecord]:
        lowered = text.lower()
        return [
            TraitRecord(
                emoji=self.trait_emoji(keyword),
                trait=keyword,
                description=f"Shows strong {keyword} tendencies",
            )
            for keyword in self._tables.trait_keywords
            if keyword.lower() in lowered
        ]

    def _scan_careers(self, text: str) -> list[CareerRecord]:
        lowered = text.lower()
        return [
            CareerRecord(
                emoji=self.career_emoji(keyword),
                career=keyword,
                match_percentage=self._match_percentage(),
            )
            for keyword in self._tables.career_keywords
            if keyword.lower() in lowered
        ]
