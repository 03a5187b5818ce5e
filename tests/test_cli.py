"""
Tests for the command-line drivers (build_prompts.py, translate_srt.py).
Pipelines and translation are patched; only argument handling and file output are exercised.
"""

import tempfile
import unittest
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))

import build_prompts
import translate_srt
from config import FAILURE_ABORT, FAILURE_SKIP
from models import SubtitleItem
from pipeline import AutoRunReport


class TestTranslateSrtCli(unittest.TestCase):

    def test_writes_viet_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "ep1.srt"
            src.write_text("1\n00:00:01,000 --> 00:00:02,000\n你好\n", encoding="utf-8")
            translated = [SubtitleItem("1", "00:00:01,000 --> 00:00:02,000", "Xin chào")]
            with patch("translate_srt.llm_utils.resolve_credentials", return_value=["k"]), \
                    patch("translate_srt.translate_document", return_value=translated) as mock_translate:
                code = translate_srt.main([str(src), "--lang", "chinese", "--batch-size", "10"])
            self.assertEqual(code, 0)
            out = Path(tmp) / "ep1_VIET.srt"
            self.assertTrue(out.read_bytes().startswith(b"\xef\xbb\xbf"))
            self.assertIn("Xin chào", out.read_text(encoding="utf-8-sig"))
            settings = mock_translate.call_args.args[3]
            self.assertEqual(settings.batch_size, 10)
            self.assertTrue(settings.remove_source_text)

    def test_missing_keys(self):
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "ep1.srt"
            src.write_text("1\nt\nx\n", encoding="utf-8")
            with patch("translate_srt.llm_utils.resolve_credentials", return_value=[]):
                self.assertEqual(translate_srt.main([str(src), "--lang", "KOREAN"]), 1)


class TestBuildPromptsCli(unittest.TestCase):

    def test_failure_flags(self):
        self.assertTrue(build_prompts.parse_args(["s.txt", "--yes"]).yes)
        self.assertTrue(build_prompts.parse_args(["s.txt", "--abort-on-failure"]).abort_on_failure)
        with self.assertRaises(SystemExit):
            build_prompts.parse_args(["s.txt", "--yes", "--abort-on-failure"])

    def test_run_exports_rows_and_prompts(self):
        captured = {}

        def fake_auto_run(pipe_self, segment_ids=None):
            captured["policy"] = pipe_self.policy
            for seg in pipe_self.state.segments:
                seg.rows = ["row one"]
                seg.prompts = ["prompt one"]
            return AutoRunReport(completed=[s.id for s in pipe_self.state.segments])

        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "story.txt"
            src.write_text("A tiny story. The end.", encoding="utf-8")
            with patch("build_prompts.llm_utils.resolve_credentials", return_value=["k"]), \
                    patch("pipeline.ZenShotPipeline.auto_run", fake_auto_run):
                code = build_prompts.main([str(src), "--yes", "--delay", "0"])
            self.assertEqual(code, 0)
            self.assertEqual((Path(tmp) / "story_prompts.txt").read_text(encoding="utf-8"), "prompt one")
            self.assertEqual((Path(tmp) / "story_rows.txt").read_text(encoding="utf-8"), "row one")
            self.assertTrue((Path(tmp) / "story_segments.json").exists())
        self.assertEqual(captured["policy"].on_failure, FAILURE_SKIP)
        self.assertEqual(captured["policy"].stage_delay, 0)

    def test_abort_exit_code(self):
        def fake_auto_run(pipe_self, segment_ids=None):
            self.assertEqual(pipe_self.policy.on_failure, FAILURE_ABORT)
            return AutoRunReport(aborted=True)

        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "story.txt"
            src.write_text("A tiny story.", encoding="utf-8")
            with patch("build_prompts.llm_utils.resolve_credentials", return_value=["k"]), \
                    patch("pipeline.ZenShotPipeline.auto_run", fake_auto_run):
                self.assertEqual(build_prompts.main([str(src), "--abort-on-failure"]), 2)


if __name__ == "__main__":
    unittest.main()
