"""
Deterministic, language-aware text splitting.

Every policy works on character offsets into the original text: chunk i is
text[start_i:end_i], and the only characters not covered by some chunk are the
whitespace runs sitting exactly at a split point. Nothing is reordered or duplicated.
"""

import re
from dataclasses import dataclass

# CJK punctuation, kana, half/full-width forms, Han (incl. extension A) and Hangul syllables
CJK_PATTERN = re.compile(
    "[\u3000-\u303f\u3040-\u309f\u30a0-\u30ff\uff00-\uff9f"
    "\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaff\uac00-\ud7af]"
)
WHITESPACE_PATTERN = re.compile(r"\s+")
TOKEN_PATTERN = re.compile(r"\S+")

LATIN_DELIMITERS = ("\n", ".", "!", "?")
CJK_DELIMITERS = ("\n", "。", "！", "？", ".", "!", "?")
CLOSING_PUNCTUATION = "\"'”’)]」』"

FIXED = "fixed"
BOUNDARY = "boundary"
CHAR = "char"
WORD = "word"


@dataclass(frozen=True)
class ChunkPolicy:
    """How to cut a document into segments.

    fixed: hard batches of max_units (no floor).
    boundary: chunks of [min_units, max_units], split after the last delimiter in that window,
    hard split at max_units when the window has none.
    """
    kind: str
    max_units: int
    min_units: int = 0
    unit: str = CHAR
    delimiters: tuple[str, ...] = LATIN_DELIMITERS
    trim_boundaries: bool = False

    def __post_init__(self):
        if self.kind not in (FIXED, BOUNDARY):
            raise ValueError(f"Unknown chunk policy kind '{self.kind}'")
        if self.unit not in (CHAR, WORD):
            raise ValueError(f"Unknown chunk unit '{self.unit}'")
        if self.max_units <= 0:
            raise ValueError("max_units must be positive")
        if not 0 <= self.min_units <= self.max_units:
            raise ValueError("min_units must be between 0 and max_units")


# ZenShot: sentence-seeking segments
ZENSHOT_CJK = ChunkPolicy(BOUNDARY, min_units=1800, max_units=2000, unit=CHAR, delimiters=CJK_DELIMITERS)
ZENSHOT_WORDS = ChunkPolicy(BOUNDARY, min_units=1200, max_units=1500, unit=WORD, delimiters=LATIN_DELIMITERS)
# Visual script: simple batching
VISUAL_CJK = ChunkPolicy(FIXED, max_units=2000, unit=CHAR)
VISUAL_WORDS = ChunkPolicy(FIXED, max_units=1400, unit=WORD)
# Viral video: line-seeking tags on the final script, any script
VIRAL_TAGS = ChunkPolicy(BOUNDARY, min_units=500, max_units=2000, unit=CHAR, delimiters=("\n",), trim_boundaries=True)

APP_POLICIES = {
    "zenshot": (ZENSHOT_CJK, ZENSHOT_WORDS),
    "visual": (VISUAL_CJK, VISUAL_WORDS),
    "viral": (VIRAL_TAGS, VIRAL_TAGS),
}


def is_cjk_text(text: str) -> bool:
    """Coarse script detection: CJK/Hangul characters make up at least half of the non-whitespace text.

    Not a language identifier; a mixed document gets whichever mode wins the majority.
    """
    non_space = WHITESPACE_PATTERN.sub("", text)
    if not non_space:
        return False
    cjk = len(CJK_PATTERN.findall(non_space))
    return cjk * 2 >= len(non_space)


def count_units(text: str, cjk: bool | None = None) -> int:
    """Characters (excluding whitespace) for CJK text, whitespace-delimited words otherwise."""
    if cjk is None:
        cjk = is_cjk_text(text)
    if cjk:
        return len(WHITESPACE_PATTERN.sub("", text))
    return len(text.split())


def policy_for(app: str, text: str) -> ChunkPolicy:
    """Pick the chunk policy for an app, selecting thresholds by script detection."""
    if app not in APP_POLICIES:
        raise ValueError(f"Unknown app '{app}'. Must be one of: {sorted(APP_POLICIES)}")
    cjk_policy, word_policy = APP_POLICIES[app]
    return cjk_policy if is_cjk_text(text) else word_policy


def _trim(text: str, start: int, end: int) -> tuple[int, int]:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def _finish(text: str, spans: list[tuple[int, int]], trim: bool) -> list[tuple[int, int]]:
    """Trim structural whitespace at split points only; the outer edges of the document are kept."""
    result = []
    last = len(spans) - 1
    for i, (start, end) in enumerate(spans):
        if trim:
            new_start, new_end = _trim(text, start, end)
            start = new_start if i > 0 else start
            end = new_end if i < last else end
        if end > start:
            result.append((start, end))
    return result


def fixed_spans(text: str, policy: ChunkPolicy) -> list[tuple[int, int]]:
    """Spans for the fixed-unit policy."""
    if not text:
        return []
    size = policy.max_units
    if policy.unit == CHAR:
        spans = [(i, min(i + size, len(text))) for i in range(0, len(text), size)]
        return _finish(text, spans, policy.trim_boundaries)

    words = [m.span() for m in TOKEN_PATTERN.finditer(text)]
    if not words:
        return [(0, len(text))]
    spans = []
    for i in range(0, len(words), size):
        group = words[i:i + size]
        start = 0 if i == 0 else group[0][0]
        end = len(text) if i + size >= len(words) else group[-1][1]
        spans.append((start, end))
    return spans


def _ends_sentence(token: str, delimiters: tuple[str, ...]) -> bool:
    stripped = token.rstrip(CLOSING_PUNCTUATION) or token
    return any(stripped.endswith(d) for d in delimiters if d != "\n")


def _boundary_char_spans(text: str, policy: ChunkPolicy) -> list[tuple[int, int]]:
    spans = []
    pos = 0
    n = len(text)
    while pos < n:
        if n - pos <= policy.max_units:
            spans.append((pos, n))
            break
        window_start = pos + policy.min_units
        window_end = pos + policy.max_units
        split_at = -1
        for d in policy.delimiters:
            idx = text.rfind(d, window_start, window_end)
            if idx != -1:
                split_at = max(split_at, idx + len(d))
        if split_at == -1:
            split_at = window_end
        spans.append((pos, split_at))
        pos = split_at
    return spans


def _boundary_word_spans(text: str, policy: ChunkPolicy) -> list[tuple[int, int]]:
    words = [m.span() for m in TOKEN_PATTERN.finditer(text)]
    if not words:
        return [(0, len(text))] if text else []
    spans = []
    first = 0  # index of the first word of the current chunk
    chunk_start = 0
    while len(words) - first > policy.max_units:
        candidate = -1  # index of the last word that may end this chunk
        for count in range(policy.min_units, policy.max_units + 1):
            if count == 0:
                continue
            w = first + count - 1
            w_start, w_end = words[w]
            gap = text[w_end:words[w + 1][0]]
            if _ends_sentence(text[w_start:w_end], policy.delimiters) or ("\n" in policy.delimiters and "\n" in gap):
                candidate = w
        if candidate == -1:
            candidate = first + policy.max_units - 1
        end = words[candidate][1]
        spans.append((chunk_start, end))
        first = candidate + 1
        chunk_start = words[first][0]
    spans.append((chunk_start, len(text)))
    return spans


def boundary_spans(text: str, policy: ChunkPolicy) -> list[tuple[int, int]]:
    """Spans for the boundary-seeking policy."""
    if not text:
        return []
    if policy.unit == WORD:
        # Word chunks always drop the whitespace run at the split point
        return _boundary_word_spans(text, policy)
    return _finish(text, _boundary_char_spans(text, policy), policy.trim_boundaries)


def chunk_spans(text: str, policy: ChunkPolicy) -> list[tuple[int, int]]:
    if policy.kind == FIXED:
        return fixed_spans(text, policy)
    return boundary_spans(text, policy)


def chunk(text: str, policy: ChunkPolicy) -> list[str]:
    """
    Split text into ordered chunks according to policy.

    Concatenating the chunks with the whitespace between their spans reproduces text exactly.

    Args:
        text: Source document.
        policy: A ChunkPolicy (see the presets above or policy_for()).

    Returns:
        List of chunk strings, in document order.
    """
    spans = chunk_spans(text, policy)
    chunks = [text[s:e] for s, e in spans]
    if len(chunks) > 1:
        print(f"[CHUNK] {len(text)} chars -> {len(chunks)} segments ({policy.kind}, {policy.unit}, max {policy.max_units})")
    return chunks


def chunk_for_app(app: str, text: str) -> list[str]:
    """Chunk a document with the app's script-appropriate policy."""
    return chunk(text, policy_for(app, text))
