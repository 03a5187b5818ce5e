"""
Translate an SRT subtitle file (Chinese, Japanese or Korean) into Vietnamese.
Writes <name>_VIET.srt next to the source, UTF-8 with BOM.
"""
import argparse
import sys
from pathlib import Path

import llm_utils
from subtitles import (
    SOURCE_LANGUAGES,
    default_translation_config,
    generate_srt,
    parse_srt,
    translate_document,
    translated_output_path,
    write_srt,
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Translate SRT subtitles with AI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python translate_srt.py episode01.srt --lang CHINESE
  python translate_srt.py episode01.srt --lang JAPANESE --batch-size 20 --delay 3
  python translate_srt.py episode01.srt --lang KOREAN --prompt "Keep a formal tone"
        """,
    )
    parser.add_argument("srt", help="Subtitle file (.srt or .txt)")
    parser.add_argument("--lang", required=True, type=str.upper, choices=SOURCE_LANGUAGES,
                        help="Source language")
    parser.add_argument("--batch-size", type=int, help="Subtitles per request (default depends on --lang)")
    parser.add_argument("--delay", type=float, help="Seconds between batches (default depends on --lang)")
    parser.add_argument("--prompt", help="Style instruction for the translator (default depends on --lang)")
    parser.add_argument("--keys-file", help="File with one API key per line (default: GEMINI_API_KEY from .env)")
    parser.add_argument("--keep-source", action="store_true",
                        help="Do not strip leftover source-language characters from the translation")
    parser.add_argument("--output", help="Output file (default: <name>_VIET.srt)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    srt_path = Path(args.srt)
    if not srt_path.exists():
        print(f"ERROR: Subtitle file not found: {srt_path}")
        return 1

    raw_keys = Path(args.keys_file).read_text(encoding="utf-8") if args.keys_file else None
    credentials = llm_utils.resolve_credentials(raw_keys)
    if not credentials:
        print("ERROR: No API keys. Pass --keys-file or set GEMINI_API_KEY in .env.")
        return 1

    settings = default_translation_config(args.lang)
    if args.batch_size is not None:
        settings.batch_size = max(1, args.batch_size)
    if args.delay is not None:
        settings.delay_seconds = max(0.0, args.delay)
    if args.prompt:
        settings.custom_prompt = args.prompt
    settings.remove_source_text = not args.keep_source

    items = parse_srt(srt_path.read_text(encoding="utf-8"))
    if not items:
        print("ERROR: No subtitle entries found.")
        return 1
    print(f"[TRANSLATE] {len(items)} entries, batch size {settings.batch_size}, delay {settings.delay_seconds}s")

    def progress(batch: int, total: int) -> None:
        print(f"[TRANSLATE] {round((batch - 1) / total * 100)}%")

    try:
        translated = translate_document(items, args.lang, credentials, settings, on_progress=progress)
    except llm_utils.CredentialExhaustedError as e:
        print(f"ERROR: Translation failed: {e}")
        return 1

    output = Path(args.output) if args.output else translated_output_path(srt_path)
    write_srt(output, generate_srt(translated))
    print(f"[DONE] Wrote {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
