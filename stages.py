"""
Stage functions: one model call per stage, routed through the key/model fallback executor.

Every stage takes its inputs plus the resolved credential list and returns parsed,
typed output. Parsing happens inside the executor operation, so a malformed response
moves on to the next (key, model) pair exactly like a failed call.
"""
import io
import json
import re
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from PIL import Image

import config
import llm_utils
import prompt_builders
from llm_utils import ResponseShapeError
from models import (
    Character,
    CharacterProfile,
    Idea,
    SceneAnalysis,
    ShotAction,
    Skeleton,
    ThumbnailLayout,
    VideoDescription,
)
from stage_schemas import (
    CHARACTER_PROFILES_SCHEMA,
    CHARACTERS_SCHEMA,
    DESCRIPTION_SCHEMA,
    IDEAS_SCHEMA,
    SCENE_ANALYSIS_SCHEMA,
    SHOT_ACTIONS_SCHEMA,
    STRING_LIST_SCHEMA,
    THUMBNAIL_LAYOUT_SCHEMA,
)
from text_chunker import count_units

T = TypeVar("T")

# Service module per stage family; each maps to a Model Rank List in config
GENERAL = "general"
VISUAL = "visual"

VISUAL_STYLES = [
    "Cinematic Realistic",
    "3D Pixar Animation",
    "Japanese Anime 90s",
    "Modern Makoto Shinkai",
    "Studio Ghibli Aesthetic",
    "Cyberpunk Neon 2077",
    "Hyper-realistic 8K Photo",
    "Spider-Verse Vibrant Comic",
    "Vintage 16mm Film",
    "Noir Black and White",
    "Oil Painting Impressionism",
    "Lo-fi Aesthetic Retro",
]

MAX_THUMBNAIL_LINES = 4
_NUMBER_PATTERN = re.compile(r"-?\d+")
_LIST_MARKER_PATTERN = re.compile(r"^(?:[-*•]\s+|\d+[.)]\s+|(?:Row|Prompt)\s*\d+\s*:\s*)", re.IGNORECASE)


# --- Response parsing ---

def clean_json_response(content: str) -> str:
    """Remove markdown code blocks from JSON response."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_json_response(raw: str, expect: type = list) -> Any:
    """Parse a model reply as JSON of the expected root type (list or dict)."""
    try:
        data = json.loads(clean_json_response(raw or ""))
    except json.JSONDecodeError as e:
        raise ResponseShapeError(f"Response is not valid JSON: {e}") from e
    if expect is list and isinstance(data, dict):
        # Accept {"items": [...]}-style wrappers
        wrapped = [v for v in data.values() if isinstance(v, list)]
        if len(wrapped) == 1:
            data = wrapped[0]
    if not isinstance(data, expect):
        raise ResponseShapeError(f"Expected a JSON {expect.__name__}, got {type(data).__name__}")
    return data


def normalize_to_string(item: Any) -> str:
    """Coerce one list element to a string; objects use their text-like field or compact JSON."""
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        for key in ("text", "content", "row", "prompt", "value"):
            if isinstance(item.get(key), str):
                return item[key]
        return json.dumps(item, ensure_ascii=False)
    if item is None:
        return ""
    return str(item)


def parse_string_list(raw: str) -> list[str]:
    """A JSON array of strings, or failing that one entry per non-blank line."""
    text = clean_json_response(raw or "")
    if text.startswith("["):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, list):
            return [s for s in (normalize_to_string(x).strip() for x in data) if s]
    lines = []
    for line in text.splitlines():
        line = _LIST_MARKER_PATTERN.sub("", line.strip()).strip()
        if line:
            lines.append(line)
    return lines


def parse_lines(raw: str) -> list[str]:
    """Like parse_string_list, but line text is kept verbatim (no list markers removed)."""
    text = clean_json_response(raw or "")
    if text.startswith("["):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = None
        if isinstance(data, list):
            return [s for s in (normalize_to_string(x).strip() for x in data) if s]
    return [line.strip() for line in text.splitlines() if line.strip()]


def rows_cover_text(rows: list[str], text: str) -> bool:
    """True when the rows, joined, equal text once all whitespace is removed."""
    return "".join(" ".join(rows).split()) == "".join((text or "").split())


def _require_rows(rows: list[str], text: str) -> list[str]:
    rows = _require_items(rows, "rows")
    if not rows_cover_text(rows, text):
        raise ResponseShapeError("Rows do not reproduce the segment text")
    return rows


def _require_text(raw: str, what: str) -> str:
    text = (raw or "").strip()
    if not text:
        raise ResponseShapeError(f"Empty {what}")
    return text


def _require_items(items: list, what: str) -> list:
    if not items:
        raise ResponseShapeError(f"No {what} in response")
    return items


def _run(
    label: str,
    service: str,
    credentials: list[str],
    operation: Callable[[Any], T],
    provider: Optional[str] = None,
    client_factory: Optional[Callable[[str, str], Any]] = None,
) -> T:
    print(f"[STAGE] {label}")
    factory = client_factory or (lambda key, model: llm_utils.ModelClient(key, model, provider))
    return llm_utils.generate_with_fallback(
        credentials,
        config.get_model_rank(service, provider),
        operation,
        client_factory=factory,
        label=label,
    )


# --- Viral video funnel ---

def extract_style_section(analysis: str, default_style: Optional[str] = None) -> str:
    """Style traits follow the last style heading of the structure analysis."""
    default = default_style or config.config.default_competitor_style
    idx = analysis.upper().rfind(prompt_builders.STYLE_SECTION_HEADING)
    if idx == -1:
        return default
    style = analysis[idx + len(prompt_builders.STYLE_SECTION_HEADING):]
    style = style.lstrip(" :*#\"").strip()
    return style or default


def analyze_structure(script: str, credentials: list[str], provider: Optional[str] = None, **kw) -> Skeleton:
    """Analyze a competitor script into its emotional skeleton plus extracted style."""
    prompt = prompt_builders.build_structure_analysis_prompt(script)

    def op(client) -> str:
        return _require_text(client.generate(prompt, temperature=config.config.temperature), "structure analysis")

    content = _run("analyze_structure", GENERAL, credentials, op, provider, **kw)
    return Skeleton(content=content, word_count=count_units(script), style=extract_style_section(content))


def generate_ideas(analysis: str, credentials: list[str], provider: Optional[str] = None, **kw) -> list[Idea]:
    prompt = prompt_builders.build_ideas_prompt(analysis)

    def op(client) -> list[Idea]:
        data = parse_json_response(client.generate(prompt, response_json_schema=IDEAS_SCHEMA))
        ideas = [Idea.from_dict(d, fallback_id=i + 1) for i, d in enumerate(data) if isinstance(d, dict)]
        return _require_items(ideas, "ideas")

    return _run("generate_ideas", GENERAL, credentials, op, provider, **kw)


def build_outline(analysis: str, idea: Idea, target_count: int, credentials: list[str], provider: Optional[str] = None, **kw) -> str:
    prompt = prompt_builders.build_outline_prompt(analysis, idea, target_count)
    return _run("build_outline", GENERAL, credentials, lambda c: _require_text(c.generate(prompt), "outline"), provider, **kw)


def write_final_script(outline: str, style: str, target_language: str, credentials: list[str], provider: Optional[str] = None, **kw) -> str:
    prompt = prompt_builders.build_final_script_prompt(outline, style, target_language)
    return _run("write_final_script", GENERAL, credentials, lambda c: _require_text(c.generate(prompt), "final script"), provider, **kw)


def match_style(response: str, style_ids: list[str]) -> Optional[str]:
    """Match an echoed style id: exact (case-insensitive) first, then containment."""
    answer = (response or "").strip().strip("\"'`.").strip()
    if not answer:
        return None
    lowered = answer.lower()
    for style_id in style_ids:
        if style_id.lower() == lowered:
            return style_id
    for style_id in style_ids:
        if style_id.lower() in lowered:
            return style_id
    return None


def recommend_style(script: str, credentials: list[str], style_ids: Optional[list[str]] = None, provider: Optional[str] = None, **kw) -> Optional[str]:
    """Pick a visual style id from the known list; None when the reply names no known style."""
    ids = style_ids or VISUAL_STYLES
    prompt = prompt_builders.build_style_recommendation_prompt(script, ids)
    response = _run("recommend_style", GENERAL, credentials, lambda c: c.generate(prompt), provider, **kw)
    return match_style(response, ids)


def design_characters(script: str, visual_style: str, credentials: list[str], provider: Optional[str] = None, **kw) -> list[CharacterProfile]:
    prompt = prompt_builders.build_character_design_prompt(script, visual_style)

    def op(client) -> list[CharacterProfile]:
        data = parse_json_response(client.generate(prompt, response_json_schema=CHARACTER_PROFILES_SCHEMA))
        return [CharacterProfile.from_dict(d) for d in data if isinstance(d, dict) and d.get("name")]

    return _run("design_characters", GENERAL, credentials, op, provider, **kw)


def analyze_actions_for_segment(
    text: str,
    style: str,
    characters: list[CharacterProfile],
    target_language: str,
    credentials: list[str],
    provider: Optional[str] = None,
    **kw,
) -> list[ShotAction]:
    """Break one tag of the final script into shot actions. Every action carries an image prompt."""
    prompt = prompt_builders.build_shot_actions_prompt(text, style, characters, target_language)

    def op(client) -> list[ShotAction]:
        data = parse_json_response(client.generate(prompt, response_json_schema=SHOT_ACTIONS_SCHEMA))
        actions = [ShotAction.from_dict(d) for d in data if isinstance(d, dict)]
        _require_items(actions, "shot actions")
        missing = [i + 1 for i, a in enumerate(actions) if not a.image_prompt.strip()]
        if missing:
            raise ResponseShapeError(f"Shot actions {missing} have an empty image prompt")
        return actions

    return _run("analyze_actions", GENERAL, credentials, op, provider, **kw)


def generate_viral_title(script: str, credentials: list[str], provider: Optional[str] = None, **kw) -> str:
    prompt = prompt_builders.build_viral_title_prompt(script)

    def op(client) -> str:
        text = _require_text(client.generate(prompt), "title")
        first = next(line for line in text.splitlines() if line.strip())
        return first.strip().strip("\"'").strip()

    return _run("generate_viral_title", GENERAL, credentials, op, provider, **kw)


def generate_description_and_hashtags(script: str, title: str, credentials: list[str], provider: Optional[str] = None, **kw) -> VideoDescription:
    prompt = prompt_builders.build_description_prompt(script, title)

    def op(client) -> VideoDescription:
        data = parse_json_response(client.generate(prompt, response_json_schema=DESCRIPTION_SCHEMA), expect=dict)
        text = str(data.get("text") or "").strip()
        if not text:
            raise ResponseShapeError("Description is missing 'text'")
        tags = [normalize_to_string(t).strip() for t in data.get("hashtags") or []]
        tags = [t if t.startswith("#") else f"#{t}" for t in tags if t]
        return VideoDescription(text=text, hashtags=tags)

    return _run("generate_description", GENERAL, credentials, op, provider, **kw)


def generate_thumbnail_layout(script: str, title: str, style_analysis: str, credentials: list[str], provider: Optional[str] = None, **kw) -> ThumbnailLayout:
    prompt = prompt_builders.build_thumbnail_layout_prompt(script, title, style_analysis)

    def op(client) -> ThumbnailLayout:
        data = parse_json_response(client.generate(prompt, response_json_schema=THUMBNAIL_LAYOUT_SCHEMA), expect=dict)
        lines = [normalize_to_string(x).strip() for x in data.get("lines") or []]
        lines = [x for x in lines if x][:MAX_THUMBNAIL_LINES]
        background = str(data.get("backgroundPrompt") or data.get("background_prompt") or "").strip()
        if not lines or not background:
            raise ResponseShapeError("Thumbnail layout needs title lines and a background prompt")
        return ThumbnailLayout(lines=lines, background_prompt=background)

    return _run("generate_thumbnail_layout", GENERAL, credentials, op, provider, **kw)


# --- ZenShot ---

def extract_characters(script: str, credentials: list[str], provider: Optional[str] = None, **kw) -> list[Character]:
    prompt = prompt_builders.build_character_extraction_prompt(script)

    def op(client) -> list[Character]:
        data = parse_json_response(client.generate(prompt, response_json_schema=CHARACTERS_SCHEMA))
        return [Character.from_dict(d) for d in data if isinstance(d, dict) and d.get("name")]

    return _run("extract_characters", GENERAL, credentials, op, provider, **kw)


def parse_action_count(raw: str) -> int:
    """First integer in the reply; 0 when there is none."""
    match = _NUMBER_PATTERN.search(raw or "")
    return max(int(match.group()), 0) if match else 0


def analyze_action_count(text: str, credentials: list[str], provider: Optional[str] = None, **kw) -> int:
    prompt = prompt_builders.build_action_count_prompt(text)
    return _run("analyze_action_count", GENERAL, credentials, lambda c: parse_action_count(c.generate(prompt)), provider, **kw)


def split_into_rows(text: str, count: int, credentials: list[str], provider: Optional[str] = None, **kw) -> list[str]:
    """Free-text split into (about) count rows, one per line."""
    prompt = prompt_builders.build_plain_row_split_prompt(text, count)

    def op(client) -> list[str]:
        return _require_rows(parse_lines(client.generate(prompt)), text)

    return _run("split_into_rows", VISUAL, credentials, op, provider, **kw)


def generate_zen_prompts(
    rows: list[str],
    style: str,
    characters: list[Character],
    previous_context: Optional[str],
    credentials: list[str],
    provider: Optional[str] = None,
    **kw,
) -> list[str]:
    """One single-line image prompt per row, inheriting setting and costume from previous_context."""
    prompt = prompt_builders.build_zen_prompts_prompt(rows, style, characters, previous_context)

    def op(client) -> list[str]:
        return _require_items(parse_string_list(client.generate(prompt)), "prompts")

    prompts = _run("generate_zen_prompts", VISUAL, credentials, op, provider, **kw)
    if len(prompts) != len(rows):
        print(f"[WARNING] Expected {len(rows)} prompts, got {len(prompts)}")
    return prompts


def generate_hook_video_prompts(
    hook: str,
    style: str,
    characters: list[Character],
    context: Optional[str],
    credentials: list[str],
    provider: Optional[str] = None,
    **kw,
) -> list[str]:
    prompt = prompt_builders.build_hook_video_prompt(hook, style, characters, context)

    def op(client) -> list[str]:
        return _require_items(parse_string_list(client.generate(prompt)), "hook video prompts")

    return _run("generate_hook_video_prompts", VISUAL, credentials, op, provider, **kw)


# --- Visual script ---

def analyze_script_scenes(text: str, credentials: list[str], provider: Optional[str] = None, **kw) -> SceneAnalysis:
    prompt = prompt_builders.build_scene_analysis_prompt(text)

    def op(client) -> SceneAnalysis:
        data = parse_json_response(client.generate(prompt, response_json_schema=SCENE_ANALYSIS_SCHEMA), expect=dict)
        breakdown = normalize_to_string(data.get("breakdown")).strip()
        try:
            count = int(data.get("count"))
        except (TypeError, ValueError) as e:
            raise ResponseShapeError(f"Scene count is not a number: {data.get('count')!r}") from e
        if not breakdown or count <= 0:
            raise ResponseShapeError("Scene analysis needs a breakdown and a positive count")
        return SceneAnalysis(breakdown=breakdown, count=count)

    return _run("analyze_script_scenes", VISUAL, credentials, op, provider, **kw)


def split_script_rows(text: str, analysis: str, count: int, credentials: list[str], provider: Optional[str] = None, **kw) -> list[str]:
    """Analysis-guided split; elements that come back as objects are coerced to strings."""
    prompt = prompt_builders.build_row_split_prompt(text, analysis, count)

    def op(client) -> list[str]:
        data = parse_json_response(client.generate(prompt, response_json_schema=STRING_LIST_SCHEMA))
        rows = [normalize_to_string(x).strip() for x in data]
        return _require_rows([r for r in rows if r], text)

    return _run("split_script_rows", VISUAL, credentials, op, provider, **kw)


def _string_array_op(prompt: str, expected: int, what: str) -> Callable[[Any], list[str]]:
    def op(client) -> list[str]:
        data = parse_json_response(client.generate(prompt, response_json_schema=STRING_LIST_SCHEMA))
        items = [normalize_to_string(x).strip() for x in data]
        _require_items([x for x in items if x], what)
        if len(items) != expected:
            print(f"[WARNING] Expected {expected} {what}, got {len(items)}")
        return items
    return op


def generate_image_prompts(rows: list[str], style: str, credentials: list[str], provider: Optional[str] = None, **kw) -> list[str]:
    prompt = prompt_builders.build_image_prompts_prompt(rows, style)
    return _run("generate_image_prompts", VISUAL, credentials, _string_array_op(prompt, len(rows), "image prompts"), provider, **kw)


def generate_video_prompts(rows: list[str], image_prompts: list[str], style: str, credentials: list[str], provider: Optional[str] = None, **kw) -> list[str]:
    prompt = prompt_builders.build_video_prompts_prompt(rows, image_prompts, style)
    return _run("generate_video_prompts", VISUAL, credentials, _string_array_op(prompt, len(rows), "video prompts"), provider, **kw)


def image_to_jpeg_bytes(image: Any) -> bytes:
    """Accept a PIL image, a file path or raw bytes; return RGB JPEG bytes."""
    if isinstance(image, (bytes, bytearray)):
        img = Image.open(io.BytesIO(image))
    elif isinstance(image, (str, Path)):
        img = Image.open(image)
    else:
        img = image
    buf = io.BytesIO()
    img.convert("RGB").save(buf, "JPEG", quality=90)
    return buf.getvalue()


def analyze_image_style(image: Any, credentials: list[str], provider: Optional[str] = None, **kw) -> str:
    """Describe the visual style of a reference image."""
    data = image_to_jpeg_bytes(image)
    prompt = prompt_builders.build_image_style_prompt()
    return _run(
        "analyze_image_style",
        GENERAL,
        credentials,
        lambda c: _require_text(c.generate(prompt, images=[data]), "style analysis"),
        provider,
        **kw,
    )
