"""
Tests for subtitles.py: SRT parsing/writing and batched translation.
"""

import tempfile
import unittest
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))

import subtitles
from llm_utils import CredentialExhaustedError
from models import SubtitleItem

SAMPLE_SRT = (
    "1\r\n00:00:01,000 --> 00:00:02,000\r\n你好\r\n\r\n"
    "2\r\n00:00:03,000 --> 00:00:04,500\r\n再见\r\n朋友\r\n\r\n"
    "3\r\n00:00:05,000 --> 00:00:06,000\r\n谢谢\r\n"
)


class FakeTranslator:
    """Client factory returning scripted responses and recording prompts."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts = []

    def __call__(self, key, model):
        return self

    def generate(self, prompt, **kwargs):
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class TestSrtFormat(unittest.TestCase):

    def test_parse(self):
        items = subtitles.parse_srt(SAMPLE_SRT)
        self.assertEqual([i.index for i in items], ["1", "2", "3"])
        self.assertEqual(items[1].timecode, "00:00:03,000 --> 00:00:04,500")
        self.assertEqual(items[1].text, "再见\n朋友")

    def test_parse_drops_short_blocks(self):
        items = subtitles.parse_srt("garbage\n\n1\n00:00:01,000 --> 00:00:02,000\nHi\n")
        self.assertEqual(len(items), 1)

    def test_generate(self):
        items = [SubtitleItem("1", "t1", "a"), SubtitleItem("2", "t2", "b")]
        self.assertEqual(subtitles.generate_srt(items), "1\nt1\na\n\n2\nt2\nb\n")

    def test_write_srt_has_bom(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = subtitles.write_srt(Path(tmp) / "out.srt", "1\nt\nxin chào\n")
            self.assertTrue(path.read_bytes().startswith(b"\xef\xbb\xbf"))
            self.assertEqual(subtitles.parse_srt(path.read_text(encoding="utf-8"))[0].text, "xin chào")

    def test_output_path(self):
        self.assertEqual(subtitles.translated_output_path("dir/movie.srt"), Path("dir/movie_VIET.srt"))
        self.assertEqual(subtitles.translated_output_path("movie.txt"), Path("movie_VIET.srt"))

    def test_clean_text(self):
        self.assertEqual(subtitles.clean_text("Xin chào 你好", "CHINESE"), "Xin chào")
        self.assertEqual(subtitles.clean_text("Chào こんにちは", "JAPANESE"), "Chào")
        self.assertEqual(subtitles.clean_text("Chào 안녕", "KOREAN"), "Chào")

    def test_default_configs(self):
        self.assertEqual(subtitles.default_translation_config("chinese").batch_size, 50)
        self.assertEqual(subtitles.default_translation_config("JAPANESE").delay_seconds, 1.5)
        self.assertEqual(subtitles.default_translation_config("KOREAN").batch_size, 45)
        with self.assertRaises(ValueError):
            subtitles.default_translation_config("FRENCH")

    def test_default_config_is_a_copy(self):
        cfg = subtitles.default_translation_config("CHINESE")
        cfg.batch_size = 1
        self.assertEqual(subtitles.default_translation_config("CHINESE").batch_size, 50)


class TestTranslateBatch(unittest.TestCase):

    def test_preserves_index_and_timecode(self):
        items = subtitles.parse_srt(SAMPLE_SRT)
        response = (
            "1\n00:00:01,000 --> 00:00:02,000\nXin chào\n\n"
            "2\n00:00:03,000 --> 00:00:04,500\nTạm biệt\nbạn\n\n"
            "Cảm ơn"
        )
        factory = FakeTranslator(response)
        result = subtitles.translate_batch(items, "CHINESE", "style", ["k"], client_factory=factory)
        self.assertEqual([r.index for r in result], ["1", "2", "3"])
        self.assertEqual([r.timecode for r in result], [i.timecode for i in items])
        self.assertEqual([r.text for r in result], ["Xin chào", "Tạm biệt\nbạn", "Cảm ơn"])
        self.assertIn("Vietnamese", factory.prompts[0])
        self.assertIn("00:00:03,000 --> 00:00:04,500", factory.prompts[0])

    def test_text_only_blocks_and_missing_block_marker(self):
        items = [SubtitleItem("1", "t1", "a"), SubtitleItem("2", "t2", "b"), SubtitleItem("3", "t3", "c")]
        result = subtitles.map_translation(items, "một\n\nhai")
        self.assertEqual([r.text for r in result], ["một", "hai", subtitles.TRANSLATION_ERROR_MARKER])
        self.assertEqual([r.timecode for r in result], ["t1", "t2", "t3"])

    def test_blank_response_marks_every_entry(self):
        items = [SubtitleItem("1", "t1", "a")]
        self.assertEqual(subtitles.map_translation(items, "  \n")[0].text, subtitles.TRANSLATION_ERROR_MARKER)

    def test_empty_batch(self):
        self.assertEqual(subtitles.translate_batch([], "CHINESE", "", ["k"]), [])


class TestTranslateDocument(unittest.TestCase):

    def _items(self, n):
        return [SubtitleItem(str(i + 1), f"t{i + 1}", f"src {i + 1}") for i in range(n)]

    def test_batches_delay_and_progress(self):
        settings = subtitles.TranslationConfig(batch_size=2, delay_seconds=1.5, custom_prompt="p")
        factory = FakeTranslator("1\nt1\nA 你\n\n2\nt2\nB", "3\nt3\nC")
        slept, progress = [], []
        result = subtitles.translate_document(
            self._items(3), "CHINESE", ["k"], settings,
            on_progress=lambda b, t: progress.append((b, t)), sleep=slept.append, client_factory=factory,
        )
        self.assertEqual([r.text for r in result], ["A", "B", "C"])
        self.assertEqual([r.index for r in result], ["1", "2", "3"])
        self.assertEqual(slept, [1.5])
        self.assertEqual(progress, [(1, 2), (2, 2)])

    def test_keep_source_text(self):
        settings = subtitles.TranslationConfig(batch_size=5, delay_seconds=0, custom_prompt="p", remove_source_text=False)
        factory = FakeTranslator("1\nt1\nA 你")
        result = subtitles.translate_document(self._items(1), "CHINESE", ["k"], settings, client_factory=factory)
        self.assertEqual(result[0].text, "A 你")

    @patch("subtitles.config.get_model_rank", return_value=["m1"])
    def test_failure_stops_the_run(self, _mock):
        settings = subtitles.TranslationConfig(batch_size=1, delay_seconds=0, custom_prompt="p")
        factory = FakeTranslator("1\nt1\nA", RuntimeError("quota exceeded"))
        with self.assertRaises(CredentialExhaustedError):
            subtitles.translate_document(self._items(3), "CHINESE", ["k"], settings, client_factory=factory)
        self.assertEqual(len(factory.prompts), 2)


if __name__ == "__main__":
    unittest.main()
