"""
Collect rows / prompts / video prompts from every segment into one flat list for export.
"""
from pathlib import Path
from typing import Callable, Optional

from models import Segment

FIELDS = ("rows", "prompts", "video_prompts")
_QUOTES = ('"', "'", "“", "”")


def normalize_line(item: str) -> str:
    """One export line: inner newlines collapsed to spaces, wrapping quotes removed."""
    text = " ".join(part.strip() for part in str(item).splitlines() if part.strip())
    text = text.strip()
    while len(text) >= 2 and text[0] in _QUOTES and text[-1] in _QUOTES:
        text = text[1:-1].strip()
    return text


def collect_all(segments: list[Segment], field: str) -> list[str]:
    """Concatenate one field across segments in document order, one line per item."""
    if field not in FIELDS:
        raise ValueError(f"Unknown field '{field}'. Must be one of: {list(FIELDS)}")
    lines = []
    for seg in segments:
        for item in getattr(seg, field):
            line = normalize_line(item)
            if line:
                lines.append(line)
    return lines


def collect_scripts(segments: list[Segment]) -> list[str]:
    """Rows of every segment; a segment that was never split contributes its text."""
    lines = []
    for seg in segments:
        items = seg.rows if seg.rows else [seg.text]
        lines.extend(line for line in (normalize_line(i) for i in items) if line)
    return lines


def export_lines(
    lines: list[str],
    path: Optional[Path] = None,
    writer: Optional[Callable[[str], None]] = None,
) -> str:
    """
    Join lines with newlines and hand the text to a file and/or a writer (e.g. a clipboard).

    Export failures are reported and not raised; the joined text is always returned.
    """
    text = "\n".join(lines)
    if path is not None:
        try:
            Path(path).write_text(text, encoding="utf-8")
            print(f"[EXPORT] {len(lines)} line(s) -> {path}")
        except OSError as e:
            print(f"[WARNING] Could not write {path}: {e}")
    if writer is not None:
        try:
            writer(text)
        except Exception as e:
            print(f"[WARNING] Export failed: {e}")
    return text
