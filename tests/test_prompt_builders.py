"""
Unit tests for prompt_builders.py functions.
"""

import unittest
import sys
from pathlib import Path

# Add parent directory to path so we can import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import prompt_builders
from models import Character, CharacterProfile, Idea


class TestLanguage(unittest.TestCase):

    def test_known_codes(self):
        self.assertEqual(prompt_builders.language_name("VN"), "Vietnamese")
        self.assertEqual(prompt_builders.language_name("ja"), "Japanese")

    def test_unknown_code_passes_through(self):
        self.assertEqual(prompt_builders.language_name("Thai"), "Thai")

    def test_final_script_names_language(self):
        result = prompt_builders.build_final_script_prompt("outline", "style", "KO")
        self.assertIn("MANDATORY OUTPUT LANGUAGE: Korean", result)


class TestContinuity(unittest.TestCase):

    def test_previous_context(self):
        result = prompt_builders.build_previous_context("red coat, rainy street")
        self.assertIn("red coat, rainy street", result)
        self.assertIn("inherit", result)

    def test_no_previous_prompt(self):
        self.assertEqual(prompt_builders.build_previous_context(None), "")
        self.assertEqual(prompt_builders.build_previous_context(""), "")

    def test_zen_prompt_includes_context_and_one_prompt_per_row(self):
        result = prompt_builders.build_zen_prompts_prompt(
            ["row a", "row b"], "Anime", [Character(name="Minh", features="scar")], "previous setting"
        )
        self.assertIn("Row 1: row a", result)
        self.assertIn("Row 2: row b", result)
        self.assertIn("2 lines", result)
        self.assertIn("Minh", result)
        self.assertIn("previous setting", result)

    def test_zen_prompt_without_context(self):
        result = prompt_builders.build_zen_prompts_prompt(["row"], "Anime", [], None)
        self.assertIn("No previous scene.", result)


class TestStagePrompts(unittest.TestCase):

    def test_structure_analysis_ends_with_style_heading(self):
        result = prompt_builders.build_structure_analysis_prompt("script")
        self.assertIn(prompt_builders.STYLE_SECTION_HEADING, result)

    def test_character_prompts_demand_neutral_features(self):
        for result in (
            prompt_builders.build_character_design_prompt("script", "Noir"),
            prompt_builders.build_character_extraction_prompt("script"),
        ):
            self.assertIn("NEUTRAL", result)

    def test_shot_actions_require_image_prompt(self):
        result = prompt_builders.build_shot_actions_prompt(
            "text", "Noir", [CharacterProfile(name="Lan", facial_details="oval face")], "EN"
        )
        self.assertIn("NEVER leave imagePrompt empty", result)
        self.assertIn("oval face", result)
        self.assertIn("English", result)

    def test_row_split_preserves_text(self):
        self.assertIn("DO NOT DELETE ANY CHARACTER", prompt_builders.build_row_split_prompt("s", "a", 3))
        self.assertIn("exactly 3 rows", prompt_builders.build_plain_row_split_prompt("s", 3))

    def test_outline_embeds_idea(self):
        idea = Idea(id=3, title="Rainy night", description="d")
        result = prompt_builders.build_outline_prompt("skeleton", idea, 900)
        self.assertIn("Rainy night", result)
        self.assertIn("900", result)

    def test_video_prompts_pair_rows_with_images(self):
        result = prompt_builders.build_video_prompts_prompt(["r1", "r2"], ["i1"], "Noir")
        self.assertIn("[Script: r1] [Image prompt: i1]", result)
        self.assertIn("[Script: r2] [Image prompt: N/A]", result)

    def test_truncation(self):
        self.assertNotIn("y" * 5001, prompt_builders.build_viral_title_prompt("y" * 6000))
        self.assertNotIn("y" * 3001, prompt_builders.build_thumbnail_layout_prompt("y" * 6000, "t", "s"))

    def test_translation_prompt(self):
        result = prompt_builders.build_translation_prompt("1\nt\ntext", "KOREAN", "be warm")
        self.assertIn("Korean to Vietnamese", result)
        self.assertIn("be warm", result)


if __name__ == "__main__":
    unittest.main()
