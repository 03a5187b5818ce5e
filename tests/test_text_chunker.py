"""
Unit tests for text_chunker.py.
"""

import unittest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import text_chunker
from text_chunker import BOUNDARY, CHAR, FIXED, WORD, ChunkPolicy


def assert_reconstructs(test, text, policy):
    """Spans cover the text in order; only whitespace lies between consecutive spans."""
    spans = text_chunker.chunk_spans(text, policy)
    test.assertEqual(spans[0][0], 0)
    test.assertEqual(spans[-1][1], len(text))
    for (_, prev_end), (start, end) in zip(spans, spans[1:]):
        test.assertLessEqual(prev_end, start)
        test.assertEqual(text[prev_end:start].strip(), "")
        test.assertLess(start, end)
    return spans


class TestScriptDetection(unittest.TestCase):

    def test_latin(self):
        self.assertFalse(text_chunker.is_cjk_text("Hello world, this is a story."))

    def test_cjk(self):
        self.assertTrue(text_chunker.is_cjk_text("你好世界。"))
        self.assertTrue(text_chunker.is_cjk_text("こんにちは"))
        self.assertTrue(text_chunker.is_cjk_text("안녕하세요"))

    def test_empty(self):
        self.assertFalse(text_chunker.is_cjk_text("   \n"))

    def test_majority_wins(self):
        self.assertTrue(text_chunker.is_cjk_text("你好世界 ok"))
        self.assertFalse(text_chunker.is_cjk_text("Chapter one 你"))

    def test_count_units(self):
        self.assertEqual(text_chunker.count_units("你好 世界"), 4)
        self.assertEqual(text_chunker.count_units("one two\n three"), 3)


class TestChunkPolicy(unittest.TestCase):

    def test_rejects_bad_bounds(self):
        with self.assertRaises(ValueError):
            ChunkPolicy(BOUNDARY, max_units=10, min_units=20)
        with self.assertRaises(ValueError):
            ChunkPolicy(FIXED, max_units=0)
        with self.assertRaises(ValueError):
            ChunkPolicy("sliding", max_units=10)

    def test_policy_for_selects_by_script(self):
        self.assertIs(text_chunker.policy_for("zenshot", "An English story."), text_chunker.ZENSHOT_WORDS)
        self.assertIs(text_chunker.policy_for("zenshot", "中文故事。"), text_chunker.ZENSHOT_CJK)
        self.assertIs(text_chunker.policy_for("visual", "中文故事。"), text_chunker.VISUAL_CJK)
        self.assertIs(text_chunker.policy_for("viral", "Any text"), text_chunker.VIRAL_TAGS)

    def test_policy_for_unknown_app(self):
        with self.assertRaises(ValueError):
            text_chunker.policy_for("other", "text")


class TestFixedChunks(unittest.TestCase):

    def test_char_batches(self):
        policy = ChunkPolicy(FIXED, max_units=4, unit=CHAR)
        self.assertEqual(text_chunker.chunk("abcdefghij", policy), ["abcd", "efgh", "ij"])

    def test_word_batches(self):
        policy = ChunkPolicy(FIXED, max_units=2, unit=WORD)
        text = "one two three four five"
        self.assertEqual(text_chunker.chunk(text, policy), ["one two", "three four", "five"])
        assert_reconstructs(self, text, policy)

    def test_empty_text(self):
        self.assertEqual(text_chunker.chunk("", text_chunker.VISUAL_WORDS), [])

    def test_short_text_is_one_chunk(self):
        self.assertEqual(text_chunker.chunk("just a few words", text_chunker.VISUAL_WORDS), ["just a few words"])


class TestBoundaryChunks(unittest.TestCase):

    def test_splits_after_last_delimiter_in_window(self):
        policy = ChunkPolicy(BOUNDARY, min_units=5, max_units=20, unit=CHAR)
        text = "Hello there. General Kenobi! You are a bold one."
        chunks = text_chunker.chunk(text, policy)
        self.assertEqual(chunks[0], "Hello there.")
        self.assertEqual("".join(chunks), text)
        for c in chunks:
            self.assertLessEqual(len(c), 20)

    def test_hard_split_without_delimiter(self):
        policy = ChunkPolicy(BOUNDARY, min_units=5, max_units=20, unit=CHAR)
        chunks = text_chunker.chunk("a" * 50, policy)
        self.assertEqual([len(c) for c in chunks], [20, 20, 10])

    def test_cjk_5000_chars(self):
        text = "你好世界。" * 1000
        chunks = text_chunker.chunk_for_app("zenshot", text)
        self.assertEqual([len(c) for c in chunks], [2000, 2000, 1000])
        for c in chunks[:-1]:
            self.assertTrue(c.endswith("。"))
        self.assertEqual("".join(chunks), text)
        assert_reconstructs(self, text, text_chunker.ZENSHOT_CJK)

    def test_latin_5000_words(self):
        sentence = "alpha beta gamma delta epsilon zeta eta theta iota end."
        text = " ".join([sentence] * 500)
        chunks = text_chunker.chunk_for_app("zenshot", text)
        counts = [len(c.split()) for c in chunks]
        self.assertEqual(sum(counts), 5000)
        for n in counts:
            self.assertLessEqual(n, 1500)
        for n in counts[:-1]:
            self.assertGreaterEqual(n, 1200)
        for c in chunks[:-1]:
            self.assertTrue(c.endswith("end."))
        self.assertEqual(" ".join(chunks).split(), text.split())
        assert_reconstructs(self, text, text_chunker.ZENSHOT_WORDS)

    def test_word_boundary_prefers_newline_gap(self):
        policy = ChunkPolicy(BOUNDARY, min_units=2, max_units=4, unit=WORD)
        text = "one two three\nfour five six seven"
        chunks = text_chunker.chunk(text, policy)
        self.assertEqual(chunks[0], "one two three")
        assert_reconstructs(self, text, policy)

    def test_word_boundary_hard_split(self):
        policy = ChunkPolicy(BOUNDARY, min_units=2, max_units=3, unit=WORD)
        chunks = text_chunker.chunk("a b c d e f g", policy)
        self.assertEqual(chunks, ["a b c", "d e f", "g"])

    def test_viral_tags_split_on_lines_and_trim(self):
        text = ("x" * 300 + "\n") * 10
        chunks = text_chunker.chunk_for_app("viral", text)
        self.assertEqual(len(chunks), 2)
        self.assertFalse(chunks[0].endswith("\n"))
        for c in chunks:
            self.assertLessEqual(len(c), 2000)
        assert_reconstructs(self, text, text_chunker.VIRAL_TAGS)

    def test_deterministic(self):
        text = "Sentence number one. " * 400
        self.assertEqual(
            text_chunker.chunk_for_app("zenshot", text),
            text_chunker.chunk_for_app("zenshot", text),
        )


if __name__ == "__main__":
    unittest.main()
