from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from app.core.errors import QuizInputError

_TABLES_CONFIG_CACHE: dict[str, Any] | None = None
_TABLES_CONFIG_PATH = Path(__file__).resolve().parents[2] / "quiz" / "data" / "quiz_tables.yaml"


def load_tables_config(path: Path | None = None) -> dict[str, Any]:
    """Parse a quiz tables YAML file into a mapping."""
    target = path or _TABLES_CONFIG_PATH
    if not target.exists():
        raise RuntimeError(f"Quiz tables not found at '{target}'.")

    import yaml

    try:
        raw = target.read_text(encoding="utf-8")
    except OSError as exc:
        raise RuntimeError(f"Failed to read quiz tables '{target}': {exc}") from exc

    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise RuntimeError(f"Invalid YAML in quiz tables '{target}': {exc}") from exc

    if not isinstance(parsed, dict):
        raise RuntimeError(f"Invalid quiz tables '{target}': expected a top-level mapping.")
    return parsed


def get_tables_config() -> dict[str, Any]:
    """Load the packaged quiz_tables.yaml and cache it."""
    global _TABLES_CONFIG_CACHE

    if _TABLES_CONFIG_CACHE is None:
        _TABLES_CONFIG_CACHE = load_tables_config()
    return _TABLES_CONFIG_CACHE


def get_tables_value(path: str, default: Any = None) -> Any:
    """Get nested config value using dot path notation, e.g. 'fallbacks.default_trait_emoji'."""
    if not path:
        return default

    current: Any = get_tables_config()
    for key in path.split("."):
        if not isinstance(current, dict):
            return default
        if key not in current:
            return default
        current = current[key]
    return current


@dataclass(frozen=True)
class AgeRangeProfile:
    age_range: str
    career_areas: tuple[str, ...]
    answer_scale: tuple[str, ...]
    skill_level: str
    game_difficulty: str


@dataclass(frozen=True)
class QuizTables:
    age_ranges: Mapping[str, AgeRangeProfile]

    @property
    def supported_age_ranges(self) -> tuple[str, ...]:
        return tuple(self.age_ranges)

    def is_supported(self, age_range: str | None) -> bool:
        return bool(age_range) and age_range in self.age_ranges

    def profile(self, age_range: str | None) -> AgeRangeProfile:
        if not age_range:
            raise QuizInputError("Age range is required.")
        profile = self.age_ranges.get(age_range)
        if profile is None:
            supported = ", ".join(self.supported_age_ranges)
            raise QuizInputError(f"Age range {age_range} not supported. Expected one of: {supported}")
        return profile

    def career_areas(self, age_range: str | None) -> tuple[str, ...]:
        return self.profile(age_range).career_areas


@dataclass(frozen=True)
class ExtractionTables:
    trait_keywords: tuple[str, ...]
    career_keywords: tuple[str, ...]
    trait_emojis: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    career_emojis: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    default_trait_emoji: str = "✨"
    default_career_emoji: str = "🌟"


def build_quiz_tables(config: Mapping[str, Any]) -> QuizTables:
    raw_ranges = config.get("age_ranges")
    if not isinstance(raw_ranges, dict) or not raw_ranges:
        raise RuntimeError("Quiz tables must define a non-empty 'age_ranges' mapping.")

    profiles: dict[str, AgeRangeProfile] = {}
    for age_range, entry in raw_ranges.items():
        entry = entry or {}
        areas = tuple(str(area) for area in entry.get("career_areas") or [])
        if not areas:
            raise RuntimeError(f"Age range '{age_range}' has no career areas.")
        profiles[str(age_range)] = AgeRangeProfile(
            age_range=str(age_range),
            career_areas=areas,
            answer_scale=tuple(str(label) for label in entry.get("answer_scale") or []),
            skill_level=str(entry.get("skill_level") or "Beginner to Advanced"),
            game_difficulty=str(entry.get("game_difficulty") or "Easy"),
        )
    return QuizTables(age_ranges=MappingProxyType(profiles))


def build_extraction_tables(config: Mapping[str, Any]) -> ExtractionTables:
    extraction = config.get("extraction") or {}
    return ExtractionTables(
        trait_keywords=tuple(str(k) for k in extraction.get("trait_keywords") or []),
        career_keywords=tuple(str(k) for k in extraction.get("career_keywords") or []),
        trait_emojis=MappingProxyType({str(k): str(v) for k, v in (extraction.get("trait_emojis") or {}).items()}),
        career_emojis=MappingProxyType({str(k): str(v) for k, v in (extraction.get("career_emojis") or {}).items()}),
        default_trait_emoji=str(extraction.get("default_trait_emoji") or "✨"),
        default_career_emoji=str(extraction.get("default_career_emoji") or "🌟"),
    )


@lru_cache(maxsize=1)
def get_quiz_tables() -> QuizTables:
    return build_quiz_tables(get_tables_config())


@lru_cache(maxsize=1)
def get_extraction_tables() -> ExtractionTables:
    return build_extraction_tables(get_tables_config())
