"""
Unit tests for batch_export.py.
"""

import tempfile
import unittest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import batch_export
from models import Segment


class TestNormalizeLine(unittest.TestCase):

    def test_collapses_newlines(self):
        self.assertEqual(batch_export.normalize_line("a wide shot\n  of the sea"), "a wide shot of the sea")

    def test_strips_wrapping_quotes(self):
        self.assertEqual(batch_export.normalize_line('"quoted prompt"'), "quoted prompt")
        self.assertEqual(batch_export.normalize_line("“curly”"), "curly")

    def test_inner_quotes_kept(self):
        self.assertEqual(batch_export.normalize_line('she says "hi" today'), 'she says "hi" today')


class TestCollect(unittest.TestCase):

    def test_concatenates_in_segment_order(self):
        segments = [
            Segment(text="1", prompts=["a", "b"]),
            Segment(text="2", prompts=["c"]),
            Segment(text="3", prompts=['"d"', "e\nmore"]),
        ]
        self.assertEqual(batch_export.collect_all(segments, "prompts"), ["a", "b", "c", "d", "e more"])

    def test_skips_empty_items(self):
        segments = [Segment(text="1", rows=["", "x", "  \n "])]
        self.assertEqual(batch_export.collect_all(segments, "rows"), ["x"])

    def test_unknown_field(self):
        with self.assertRaises(ValueError):
            batch_export.collect_all([], "actions")

    def test_collect_scripts_falls_back_to_text(self):
        segments = [Segment(text="unsplit\ntext"), Segment(text="t", rows=["r1", "r2"])]
        self.assertEqual(batch_export.collect_scripts(segments), ["unsplit text", "r1", "r2"])


class TestExportLines(unittest.TestCase):

    def test_writes_file_and_writer(self):
        copied = []
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "prompts.txt"
            text = batch_export.export_lines(["a", "b"], path=path, writer=copied.append)
            self.assertEqual(path.read_text(encoding="utf-8"), "a\nb")
        self.assertEqual(text, "a\nb")
        self.assertEqual(copied, ["a\nb"])

    def test_writer_failure_is_not_raised(self):
        def broken(_text):
            raise RuntimeError("clipboard unavailable")
        self.assertEqual(batch_export.export_lines(["x"], writer=broken), "x")


if __name__ == "__main__":
    unittest.main()
