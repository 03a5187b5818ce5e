"""
Build image prompts from a script file.

Chunks the script into segments, auto-runs the ZenShot or Visual Script pipeline over
them and exports rows and prompts as plain text (one line per item) plus a JSON dump
of every segment.
"""
import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path

import llm_utils
from batch_export import collect_all, collect_scripts, export_lines
from config import FAILURE_ABORT, FAILURE_ASK, FAILURE_SKIP, config
from pipeline import PrerequisiteError, VisualScriptPipeline, ZenShotPipeline

APPS = {
    "zenshot": ZenShotPipeline,
    "visual": VisualScriptPipeline,
}


def ask_continue(segment, stage_name: str, error: BaseException) -> bool:
    """Interactive failure prompt: skip the failed segment and continue, or stop."""
    print(f"\n[AUTO] Stage '{stage_name}' failed for segment {segment.id}: {error}")
    answer = input("Skip this segment and continue with the rest? [y/N] ").strip().lower()
    return answer in ("y", "yes")


def read_keys(keys_file: str | None) -> list[str]:
    raw = Path(keys_file).read_text(encoding="utf-8") if keys_file else None
    return llm_utils.resolve_credentials(raw)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate image prompts from a script with AI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # ZenShot: split every tag into 10 rows, one prompt per row
  python build_prompts.py story.txt

  # Visual script: scene analysis -> rows -> image prompts, with a fixed style
  python build_prompts.py story.txt --app visual --style "Studio Ghibli Aesthetic"

  # Several API keys (one per line), unattended run that skips failed segments
  python build_prompts.py story.txt --keys-file keys.txt --yes
        """,
    )
    parser.add_argument("script", help="Script text file")
    parser.add_argument("--app", choices=sorted(APPS), default="zenshot",
                        help="Pipeline to run (default: zenshot)")
    parser.add_argument("--style", default="", help="Visual style text used in every prompt")
    parser.add_argument("--image", help="Reference image; its analyzed style replaces --style (visual app)")
    parser.add_argument("--keys-file", help="File with one API key per line (default: GEMINI_API_KEY from .env)")
    parser.add_argument("--delay", type=float,
                        help="Seconds between calls (default: 15 for zenshot, 5 for visual)")
    parser.add_argument("--image-count", type=int, default=config.zenshot_image_count,
                        help=f"Rows per segment for zenshot (default: {config.zenshot_image_count})")
    parser.add_argument("--extract-characters", action="store_true",
                        help="Extract characters first so prompts repeat their descriptions (zenshot)")
    failure = parser.add_mutually_exclusive_group()
    failure.add_argument("--abort-on-failure", action="store_true",
                         help="Stop at the first segment that still fails after a retry")
    failure.add_argument("--yes", action="store_true",
                         help="Skip failed segments without asking")
    parser.add_argument("--output", help="Output prefix (default: script file name without extension)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    script_path = Path(args.script)
    if not script_path.exists():
        print(f"ERROR: Script file not found: {script_path}")
        return 1
    script = script_path.read_text(encoding="utf-8")

    credentials = read_keys(args.keys_file)
    if not credentials:
        print("ERROR: No API keys. Pass --keys-file or set GEMINI_API_KEY in .env.")
        return 1
    print(f"[CONFIG] {len(credentials)} API key(s): {', '.join(llm_utils.mask_key(k) for k in credentials)}")

    policy = config.policy_for(args.app)
    if args.delay is not None:
        policy.stage_delay = policy.retry_delay = args.delay
    if args.abort_on_failure:
        policy.on_failure = FAILURE_ABORT
    elif args.yes:
        policy.on_failure = FAILURE_SKIP
    else:
        policy.on_failure = FAILURE_ASK

    pipeline = APPS[args.app](credentials, policy=policy, confirm_continue=ask_continue)
    pipeline.state.visual_style = args.style

    try:
        segments = pipeline.load_script(script)
        if args.app == "zenshot":
            for seg in segments:
                pipeline.set_image_count(seg.id, args.image_count)
            if args.extract_characters:
                characters = pipeline.extract_characters()
                print(f"[CHARACTERS] {', '.join(c.name for c in characters) or '(none)'}")
        elif args.image:
            pipeline.analyze_style(args.image)
            print(f"[STYLE] {pipeline.state.visual_style[:120]}")
        report = pipeline.auto_run()
    except PrerequisiteError as e:
        print(f"ERROR: {e}")
        return 1
    except llm_utils.CredentialExhaustedError as e:
        print(f"ERROR: {e}")
        return 1

    prefix = Path(args.output) if args.output else script_path.with_suffix("")
    export_lines(collect_scripts(segments), Path(f"{prefix}_rows.txt"))
    export_lines(collect_all(segments, "prompts"), Path(f"{prefix}_prompts.txt"))
    dump = {
        "app": args.app,
        "visual_style": pipeline.state.visual_style,
        "completed": report.completed,
        "skipped": report.skipped,
        "aborted": report.aborted,
        "segments": [
            {"id": s.id, "text": s.text, "rows": s.rows, "prompts": s.prompts, "status": s.status.value}
            for s in segments
        ],
        "characters": [asdict(c) for c in pipeline.state.characters],
    }
    Path(f"{prefix}_segments.json").write_text(json.dumps(dump, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"[DONE] {len(report.completed)}/{len(segments)} segment(s) completed")
    return 2 if report.aborted else 0


# ------------- ENTRY POINT -------------

if __name__ == "__main__":
    sys.exit(main())
