"""
SRT subtitle handling and batched subtitle translation.

Index and timecode of every entry are copied from the source; only the text is
replaced by the translation.
"""
import re
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Optional

import config
import llm_utils
import prompt_builders
from models import SubtitleItem

CHINESE = "CHINESE"
JAPANESE = "JAPANESE"
KOREAN = "KOREAN"
SOURCE_LANGUAGES = (CHINESE, JAPANESE, KOREAN)

TRANSLATION_ERROR_MARKER = "[Translation error]"
OUTPUT_SUFFIX = "_VIET"

_BLOCK_SEPARATOR = re.compile(r"\n\s*\n")
# Source-script characters left behind in a translation
_SOURCE_SCRIPT_PATTERNS = {
    CHINESE: re.compile("[\u4e00-\u9fa5]"),
    JAPANESE: re.compile("[\u3040-\u30ff\u4e00-\u9faf]"),
    KOREAN: re.compile("[\uac00-\ud7af]"),
}


@dataclass
class TranslationConfig:
    batch_size: int
    delay_seconds: float
    custom_prompt: str
    remove_source_text: bool = True


DEFAULT_TRANSLATION_CONFIGS = {
    CHINESE: TranslationConfig(
        batch_size=50,
        delay_seconds=1,
        custom_prompt=(
            "Translate in a wuxia style with sworn-brother forms of address and a classical period tone; "
            "keep distinctive titles unchanged."
        ),
    ),
    JAPANESE: TranslationConfig(
        batch_size=40,
        delay_seconds=1.5,
        custom_prompt=(
            "Translate in an anime/manga style; keep honorifics such as -san, -kun, -sama where needed; "
            "stay close to the meaning but sound natural."
        ),
    ),
    KOREAN: TranslationConfig(
        batch_size=45,
        delay_seconds=1,
        custom_prompt=(
            "Translate in a K-drama style; use Oppa/Unnie/Noona forms of address as the context requires; "
            "keep the tone warm and familiar."
        ),
    ),
}


def default_translation_config(source_language: str) -> TranslationConfig:
    """Return a copy of the defaults for a source language."""
    lang = source_language.upper()
    if lang not in DEFAULT_TRANSLATION_CONFIGS:
        raise ValueError(f"Unsupported source language '{source_language}'. Must be one of: {list(SOURCE_LANGUAGES)}")
    return replace(DEFAULT_TRANSLATION_CONFIGS[lang])


def parse_srt(content: str) -> list[SubtitleItem]:
    """Parse SRT text into items. Blocks with fewer than three lines are dropped."""
    content = content.replace("\r\n", "\n").lstrip("\ufeff")
    items = []
    for block in _BLOCK_SEPARATOR.split(content.strip()):
        lines = block.split("\n")
        if len(lines) < 3:
            continue
        index = lines[0].strip()
        if not index:
            continue
        items.append(SubtitleItem(index=index, timecode=lines[1].strip(), text="\n".join(lines[2:]).strip()))
    return items


def generate_srt(items: list[SubtitleItem]) -> str:
    return "\n".join(f"{item.index}\n{item.timecode}\n{item.text}\n" for item in items)


def clean_text(text: str, source_language: str) -> str:
    """Strip characters of the source script from a translated line."""
    pattern = _SOURCE_SCRIPT_PATTERNS.get(source_language.upper())
    if pattern is None:
        return text.strip()
    return pattern.sub("", text).strip()


def translated_output_path(path) -> Path:
    """movie.srt -> movie_VIET.srt (a .txt source also gets .srt)."""
    path = Path(path)
    stem = path.stem if path.suffix.lower() in (".srt", ".txt") else path.name
    return path.with_name(f"{stem}{OUTPUT_SUFFIX}.srt")


def write_srt(path, content: str) -> Path:
    """Write SRT content as UTF-8 with a byte order mark."""
    path = Path(path)
    path.write_text(content, encoding="utf-8-sig")
    return path


def _format_blocks(items: list[SubtitleItem]) -> str:
    return "\n\n".join(f"{item.index}\n{item.timecode}\n{item.text}" for item in items)


def map_translation(items: list[SubtitleItem], response: str) -> list[SubtitleItem]:
    """Map translated blocks back onto the source items by position.

    A full block (index, timecode, text) contributes its text lines; a shorter block is taken
    as text only. Missing blocks get the error marker, empty translations keep the source text.
    """
    blocks = _BLOCK_SEPARATOR.split((response or "").strip()) if (response or "").strip() else []
    result = []
    for i, original in enumerate(items):
        if i >= len(blocks):
            result.append(replace(original, text=TRANSLATION_ERROR_MARKER))
            continue
        lines = blocks[i].split("\n")
        text = "\n".join(lines[2:] if len(lines) >= 3 else lines).strip()
        result.append(replace(original, text=text or original.text))
    return result


def translate_batch(
    items: list[SubtitleItem],
    source_language: str,
    custom_prompt: str,
    credentials: list[str],
    target_language: str = "Vietnamese",
    provider: Optional[str] = None,
    client_factory: Optional[Callable] = None,
) -> list[SubtitleItem]:
    """Translate one batch of subtitles; output has the same length, order, indexes and timecodes."""
    if not items:
        return []
    prompt = prompt_builders.build_translation_prompt(
        _format_blocks(items), source_language, custom_prompt, target_language
    )

    def op(client) -> list[SubtitleItem]:
        return map_translation(items, client.generate(prompt, temperature=config.config.translation_temperature))

    return llm_utils.generate_with_fallback(
        credentials,
        config.get_model_rank("translation", provider),
        op,
        client_factory=client_factory or (lambda key, model: llm_utils.ModelClient(key, model, provider)),
        label="translate_batch",
    )


def translate_document(
    items: list[SubtitleItem],
    source_language: str,
    credentials: list[str],
    settings: Optional[TranslationConfig] = None,
    target_language: str = "Vietnamese",
    on_progress: Optional[Callable[[int, int], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kw,
) -> list[SubtitleItem]:
    """
    Translate a whole subtitle list batch by batch.

    Batches run in order with settings.delay_seconds between them. The first batch that
    fails raises (nothing partial is returned).

    Args:
        items: Parsed subtitle items.
        source_language: CHINESE, JAPANESE or KOREAN.
        credentials: Resolved API keys.
        settings: Batch size, delay, style prompt; defaults per source language.
        target_language: Language name to translate into.
        on_progress: Called with (batch_number, total_batches) before each batch.
        sleep: Delay function (injectable for tests).

    Returns:
        Translated items in source order.
    """
    settings = settings or default_translation_config(source_language)
    if settings.batch_size <= 0:
        raise ValueError("batch_size must be positive")
    total = (len(items) + settings.batch_size - 1) // settings.batch_size
    translated: list[SubtitleItem] = []
    for i in range(total):
        batch = items[i * settings.batch_size:(i + 1) * settings.batch_size]
        if on_progress:
            on_progress(i + 1, total)
        print(f"[TRANSLATE] Batch {i + 1}/{total} ({len(batch)} entries)")
        try:
            result = translate_batch(batch, source_language, settings.custom_prompt, credentials, target_language, **kw)
        except Exception as e:
            print(f"[ERROR] Translation stopped at batch {i + 1}/{total}: {e}")
            raise
        if settings.remove_source_text:
            result = [replace(item, text=clean_text(item.text, source_language)) for item in result]
        translated.extend(result)
        if i < total - 1 and settings.delay_seconds > 0:
            sleep(settings.delay_seconds)
    return translated
