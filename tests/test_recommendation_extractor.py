import random
import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.schemas.quiz import Analysis
from app.services.recommendation_extractor import (
    MAX_CAREERS,
    LegacyAnalysis,
    RecommendationExtractor,
    StructuredAnalysis,
    analysis_source,
)

LEGACY_TEXT = (
    "This student is creative and curious. They would make a great Artist, "
    "and could also enjoy working as an Engineer."
)


class AnalysisSourceTests(unittest.TestCase):
    def test_variants(self):
        self.assertIsNone(analysis_source(None))
        self.assertIsInstance(analysis_source("free text"), LegacyAnalysis)
        self.assertIsInstance(analysis_source(Analysis()), StructuredAnalysis)

        structured = analysis_source({"top_career_areas": ["Art"]})
        self.assertEqual(structured.kind, "structured")
        self.assertEqual(structured.analysis.top_career_areas, ["Art"])

        legacy = analysis_source({"top_career_areas": 5})
        self.assertEqual(legacy.kind, "legacy")


class RecommendationExtractorTests(unittest.TestCase):
    def _extractor(self, seed=7):
        return RecommendationExtractor(rng=random.Random(seed))

    def test_structured_careers_pass_through_with_emojis(self):
        analysis = Analysis(top_career_areas=["Science", "Art", {"career": "Chef", "matchPercentage": 91}])
        careers = self._extractor().careers(analysis)

        self.assertEqual([c.career for c in careers], ["Science", "Art", "Chef"])
        self.assertEqual(careers[0].emoji, "🔬")
        self.assertEqual(careers[1].emoji, "🎨")
        self.assertEqual(careers[2].match_percentage, 91)
        for career in careers:
            self.assertGreaterEqual(career.match_percentage, 70)
            self.assertLessEqual(career.match_percentage, 99)

    def test_careers_are_capped(self):
        analysis = Analysis(top_career_areas=["Art", "Science", "Technology", "Nature", "Music", "Business", "Design"])
        self.assertEqual(len(self._extractor().careers(analysis)), MAX_CAREERS)

    def test_seeded_rng_is_reproducible(self):
        analysis = Analysis(top_career_areas=["Art", "Science", "Technology"])
        first = [c.match_percentage for c in self._extractor(seed=11).careers(analysis)]
        second = [c.match_percentage for c in self._extractor(seed=11).careers(analysis)]
        self.assertEqual(first, second)

    def test_structured_traits_pass_through(self):
        analysis = Analysis(personality_traits=["Curious", {"trait": "organized", "description": "Keeps notes"}])
        traits = self._extractor().traits(analysis)

        self.assertEqual([t.trait for t in traits], ["Curious", "organized"])
        self.assertEqual(traits[0].emoji, "🔍")
        self.assertEqual(traits[1].emoji, "📋")
        self.assertEqual(traits[1].description, "Keeps notes")

    def test_empty_structured_traits_scan_the_analysis_text(self):
        analysis = Analysis(top_career_areas=["Art"], ai_analysis={"explanation": "A very analytical and helpful thinker."})
        traits = self._extractor().traits(analysis)
        self.assertEqual([t.trait for t in traits], ["analytical", "helpful"])

    def test_legacy_text_is_scanned(self):
        extractor = self._extractor()
        traits = extractor.traits(LEGACY_TEXT)
        careers = extractor.careers(LEGACY_TEXT)

        self.assertEqual([t.trait for t in traits], ["creative", "curious"])
        self.assertEqual(traits[0].emoji, "🎨")
        self.assertEqual([c.career for c in careers], ["Artist", "Engineer"])
        self.assertEqual(careers[1].emoji, "⚙️")

    def test_nothing_to_extract(self):
        extractor = self._extractor()
        self.assertEqual(extractor.traits(None), [])
        self.assertEqual(extractor.careers("No keywords here."), [])

    def test_emoji_lookup(self):
        extractor = self._extractor()
        self.assertEqual(extractor.trait_emoji("Creative"), "🎨")
        self.assertEqual(extractor.trait_emoji("super curious explorer"), "🔍")
        self.assertEqual(extractor.trait_emoji("zzz"), "✨")
        self.assertEqual(extractor.career_emoji("Marine Science"), "🔬")
        self.assertEqual(extractor.career_emoji("Astronaut"), "🌟")
        self.assertEqual(extractor.career_emoji(""), "🌟")


if __name__ == "__main__":
    unittest.main()
