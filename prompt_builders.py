"""
Modular prompt builders for the generation stages.
Each builder embeds the stage inputs and the strict output rules for that stage.
"""
import json
from typing import Optional

from models import Character, CharacterProfile, Idea

LANGUAGE_NAMES = {
    "VN": "Vietnamese",
    "EN": "English",
    "JA": "Japanese",
    "KO": "Korean",
    "ZH": "Chinese",
}

# Heading the structure analysis must end with; the style section is split off after it
STYLE_SECTION_HEADING = "COMPETITOR STYLE"

ANATOMY_RULES = (
    "NO duplication, NO mutation, NO anatomical distortion, "
    "Any violation of anatomy rules is forbidden"
)
SINGLE_CHARACTER_TAG = "The scene contains EXACTLY ONE character"


def language_name(code: str) -> str:
    """Map a language code (VN, EN, ...) to its name; unknown codes pass through."""
    return LANGUAGE_NAMES.get(code.upper(), code) if code else LANGUAGE_NAMES["VN"]


def get_neutral_features_rules() -> str:
    """Feature descriptions must stay neutral physical structure. Shared by both character stages."""
    return """FEATURE RULES (MANDATORY):
- Describe ONLY the NORMAL / NEUTRAL state of the face (neutral expression).
- NEVER include emotions or situations (NOT "crying", "dirt-smeared face", "sinister grin").
- Describe physical structure only: eyes, nose, mouth, skin, hair.
- Keep it tidy and concise, no flowery language."""


def build_structure_analysis_prompt(script: str) -> str:
    return f"""Read the entire "competitor script" below and analyze it according to these rules:
Script: \"\"\"{script}\"\"\"

Goal: extract the emotional structure skeleton (Hook, Build-up, Value/Twist, CTA).

Requirements:
1. Identify the section boundaries by emotional function.
2. For each section describe: main content, dominant emotion, how the emotion is delivered, why it works.
3. Extract: 3 core elements, language & rhythm traits (5-8 points), 3 emotional patterns.

Constraints: do not add characters or settings that are not in the script. No subjective judgement.
END WITH A SEPARATE SECTION TITLED "{STYLE_SECTION_HEADING}" listing the style traits for the next step to use."""


def build_ideas_prompt(skeleton: str, count: int = 5) -> str:
    return f"""Based on the following structure analysis:
\"\"\"{skeleton}\"\"\"

Task: create {count} new video content ideas that keep the "emotional soul" of the original script.

Each idea has:
- A short title
- Content description (3-5 sentences)
- Characters / setting
- Highlight value (emotional / practical)
- Viral potential

Response must be a valid JSON array matching the schema:
[{{ "id": number, "title": string, "description": string, "charactersContext": string, "highlightValue": string, "viralPotential": string }}]"""


def build_outline_prompt(skeleton: str, idea: Idea, target_count: int) -> str:
    return f"""Build a detailed outline based on:
- Original skeleton: \"\"\"{skeleton}\"\"\"
- Chosen idea: \"\"\"{json.dumps(idea.to_dict(), ensure_ascii=False)}\"\"\"
- Target total word count: {target_count}

Structure: keep the original form (Hook -> Build-up -> Value/Twist -> CTA).
For each section state: goal, main emotion, content to develop, link to previous/next section, allocated word count."""


def build_final_script_prompt(outline: str, style: str, target_language: str = "VN") -> str:
    lang = language_name(target_language)
    return f"""Write the complete, voice-ready script based on this outline and style:
- Outline: \"\"\"{outline}\"\"\"
- Style to emulate: \"\"\"{style}\"\"\"

MANDATORY OUTPUT LANGUAGE: {lang}.
The whole script must be written in {lang}.

STRICT RULES:
1. Return 100% clean spoken lines only. No headings, no notes, no parentheses ( ), no background music cues.
2. Write continuously in the order Hook -> Build-up -> Value/Twist -> CTA."""


def build_style_recommendation_prompt(script: str, style_ids: list[str]) -> str:
    return f"""Based on the following video script:
\"\"\"{script}\"\"\"

Pick the single most suitable visual style from this list:
{", ".join(style_ids)}

Return ONLY the ID of that style, no explanation."""


def build_character_design_prompt(script: str, style: str) -> str:
    return f"""Based on the following script and the visual style [{style}]:
Script: \"\"\"{script}\"\"\"

Design every character that appears in the script in detail. If the script does not describe them,
invent details so the cast looks consistent and polished.

MANDATORY RULES:
1. "bodyType": EXTREMELY SHORT (e.g. "tall and thin", "chubby", "balanced", "muscular").
2. "facialDetails": if the script lacks detail, fill it in, but keep it concise.
{get_neutral_features_rules()}

Return a JSON array of objects with:
- name
- gender
- country: country / ethnicity
- age
- bodyType: as short as possible
- facialDetails: physical structure, tidy, no emotion"""


def build_character_extraction_prompt(script: str) -> str:
    return f"""Analyze the following script and extract/create characters. For each character provide:
Name, Gender, Country, Age, Physique and detailed facial features.

CRITICAL RULES:
1. If details are missing from the script (gender, country, age, physique or face), you MUST creatively
   generate them so each character is visually distinct.
2. Focus HEAVILY on specific facial features: eye shape/color, nose shape, skin texture, wrinkles,
   hair style/texture/color, and any unique facial markings.
3. ABSOLUTELY NO clothing, NO personality traits and NO equipment.
4. Write the 'features' field as descriptive sentences about the face and hair only.
{get_neutral_features_rules()}

Output a JSON array of objects. Script: {script}"""


def build_shot_actions_prompt(
    segment_text: str,
    style: str,
    characters: list[CharacterProfile],
    target_language: str = "VN",
) -> str:
    """Shot-action breakdown for one segment of the final script."""
    lang = language_name(target_language)
    roster = "\n".join(c.describe() for c in characters) or "(no characters designed)"
    return f"""You are an expert SITUATION ANALYST and visual director.
Task: analyze the script below and extract the shot actions.

Script: \"\"\"{segment_text}\"\"\"

MANDATORY OUTPUT LANGUAGE for text fields (action, voiceText): {lang}.

CONTENT CLASSIFICATION RULES (CRITICAL):
1. "voiceText": ONLY dialogue a character actually speaks (direct speech). Translate to {lang}.
2. "action": visual action AND narrator/voice-over lines AND non-verbal sounds. Translate to {lang}.

ORIGINAL CHARACTER DATA (COPY EXACTLY WHENEVER A CHARACTER IS MENTIONED):
{roster}

SITUATIONAL ANALYSIS:
1. Use the content immediately before and after each action to infer which characters are PRESENT.
2. If a character is not named but the situation requires them to be there, include them.
3. In 'action', list the names of the characters present first in parentheses, e.g. (Nam, Lan): ...

PROMPT RULES (rules override everything):
1. [VISUAL STYLE]: always start with [{style}].
2. [Setting] (context memory): add details if the script has none. Reuse the previous setting until
   the scene changes; when it changes, establish a new detailed setting and remember it.
3. [RULES]: always add [{ANATOMY_RULES}].
4. [CAMERA]: angle and camera movement, cinematic wording.
5. [ACTION]: whenever a character is mentioned, COPY their full character data verbatim. Never abbreviate.
6. [Costume] (costume memory): add colors if unspecified; keep costumes across shots until time/scene changes.
7. [AUDIO/VOICE - LIP SYNC]: [Character says: "line from voiceText"] (direct dialogue only).
8. [SPEECH SYNC]: if there is dialogue, add [Character mouth movement synced with dialogue].
9. [TECHNICAL]: lighting and color.
10. [CHARACTER COUNT]: if exactly one character is in the shot, end the ACTION part with
    "{SINGLE_CHARACTER_TAG}". Never add it for two or more characters.

VIDEO PROMPT STRUCTURE (motionPrompt):
[{style}], [Detailed setting], [{ANATOMY_RULES}], [CAMERA], [ACTION], [Costume], [AUDIO/VOICE - LIP SYNC], [SPEECH SYNC], [TECHNICAL]

IMAGE PROMPT (imagePrompt): a still-frame prompt for the same shot. NEVER leave imagePrompt empty.

RETURN a JSON array of objects:
- action
- voiceText
- motionPrompt
- imagePrompt"""


def build_action_count_prompt(script: str) -> str:
    return f"""You are a script analyst. Count the main "visual actions" in the script below.

RULES:
1. Only count concrete actions that can be turned into an image (e.g. "running", "holding a bento box", "staring into the distance").
2. Ignore reflective narration and inner thoughts that are not shown through action or expression.
3. Return ONLY a single number.

SCRIPT:
{script}"""


def build_scene_analysis_prompt(script: str) -> str:
    return f"""Task: read the script below and break it into representative visual scenes (scene breakdown).
Each segment must stand for one message or emotional phase. Then count the total number of segments.

Script: "{script}"

Return JSON: {{ "breakdown": string, "count": number }}"""


def build_row_split_prompt(script: str, analysis: str, count: int) -> str:
    """Analysis-guided split; returns a JSON array."""
    return f"""Based on the scene analysis: "{analysis}" and the number of segments {count}, split the
original script below into exactly {count} rows matching those segments.

CRITICAL RULES:
- DO NOT DELETE ANY CHARACTER of the original script.
- You may only add line breaks to separate the segments.
- Return a JSON array of strings, one per scene.

Original script: "{script}\""""


def build_plain_row_split_prompt(script: str, count: int) -> str:
    """Free-text split; one row per line."""
    return f"""You are a professional script splitting tool. Split the script below into exactly {count} rows.

ABSOLUTE RULES:
1. RETURN ONLY THE SCRIPT ROWS. No introduction of any kind.
2. KEEP 100% OF THE ORIGINAL TEXT. Do not delete, edit, add or remove any character.
3. Return exactly {count} lines, each line one logical segment.

SCRIPT:
{script}"""


def _numbered(rows: list[str], label: str = "") -> str:
    prefix = f"{label} " if label else ""
    return "\n".join(f"{prefix}{i + 1}: {r}" if label else f"{i + 1}. {r}" for i, r in enumerate(rows))


def build_image_prompts_prompt(rows: list[str], style: str) -> str:
    return f"""Create image prompts for Midjourney/Stable Diffusion from the script rows below and the given visual style.

Style: {style}

Prompt structure (English): [Subject], [Action], [Environment], [Lighting/Atmosphere], [Camera Angle/Lens], [Style].

Script rows:
{_numbered(rows)}

Return a JSON array with exactly {len(rows)} prompt strings, in the same order as the rows."""


def build_zen_prompts_prompt(
    rows: list[str],
    visual_style: str,
    characters: list[Character],
    previous_context: Optional[str] = None,
) -> str:
    character_db = "\n".join(c.describe() for c in characters) or "(no characters)"
    return f"""You are ZenShot AI, an iron-disciplined visual director. Turn the script rows into image prompts for Midjourney.

CORE RULES (100% MANDATORY):
1. FORMAT: every prompt on ONE SINGLE LINE. No line breaks inside a prompt.
2. NO SUMMARIZING: copy the character descriptions below VERBATIM.
3. STATE MEMORY:
   - If previous context is given, inherit costume and setting from it unless the script changes them.
   - Keep clothing and setting consistent across consecutive rows.
4. PROMPT STRUCTURE (one paragraph):
   [Style/Camera angle] + [Action/Expression] + [Character name: verbatim description] + [Current costume] + [Detailed setting] + --ar 16:9

CHARACTER DATA:
{character_db}

VISUAL STYLE:
{visual_style}

SETTING/COSTUME OF THE PREVIOUS TAGS (IF ANY):
{previous_context or "No previous scene."}

CREATE ONE PROMPT FOR EACH ROW BELOW (one prompt per line, {len(rows)} lines):
{_numbered(rows, "Row")}

Return only the list of prompts. One prompt per line."""


def build_previous_context(last_prompt: Optional[str]) -> str:
    """Continuity context carried from the previous segment's last prompt."""
    if not last_prompt:
        return ""
    return (
        "This is the last prompt of the previous tag; inherit its setting and costume: "
        f"{last_prompt}"
    )


def build_video_prompts_prompt(rows: list[str], image_prompts: list[str], style: str = "") -> str:
    pairs = "\n".join(
        f"Row {i + 1}: [Script: {r}] [Image prompt: {image_prompts[i] if i < len(image_prompts) else 'N/A'}]"
        for i, r in enumerate(rows)
    )
    style_line = f"\nVisual style: {style}\n" if style else ""
    return f"""Based on the script and the existing image prompts, create matching "video motion prompts".
{style_line}
Requirements:
- Each video prompt describes subject and camera motion (camera motion, subject action, dynamic transitions).
- Language: English.
- The result is an array of strings, one per script row, in order.

Script & image prompts:
{pairs}

Return a JSON array with exactly {len(rows)} strings."""


def build_hook_video_prompt(
    hook: str,
    visual_style: str,
    characters: list[Character],
    context: Optional[str] = None,
) -> str:
    character_db = "\n".join(c.describe() for c in characters) or "(no characters)"
    return f"""You are a visual director specialized in video/cinematic work. Analyze the "Hook" below and create video prompts that describe motion.

DETAILED REQUIREMENTS:
1. ACTION BREAKDOWN: every concrete action in the hook gets its own prompt.
2. CHARACTER SYNC: copy the character description below VERBATIM whenever that character appears.
3. MOTION: state the kind of motion (e.g. "Slo-mo walking", "Cinematic drone shot following", "Close-up of facial expression change").
4. SETTING/COSTUME: inherit from the provided context.
5. FORMAT: one prompt per line.

PROMPT STRUCTURE:
[Motion type/Camera angle] + [Character action] + [Detailed character description] + [Costume & Setting]

CHARACTER DATA:
{character_db}

VISUAL STYLE:
{visual_style}

INHERITED SETTING/COSTUME:
{context or "Create freely from the overall atmosphere."}

HOOK CONTENT:
{hook}

Return only the list of video prompts, one per line."""


def build_image_style_prompt() -> str:
    return (
        "Analyze this image and describe its visual style in detail (lighting, color palette, texture, "
        "medium, composition, camera angle, atmosphere). Provide a concise but comprehensive paragraph "
        "suitable as an image generation style reference. Ignore any text or logos."
    )


def build_viral_title_prompt(script: str) -> str:
    return f"""CONTEXT: You are a world-class YouTube strategist. You know exactly what makes people click.
INPUT SCRIPT: \"\"\"{script[:5000]}\"\"\"

TASK: generate THE SINGLE BEST viral title for this video.

RULES:
1. DETECT LANGUAGE: output the title in the SAME LANGUAGE as the input script.
2. STYLE: click-worthy, high curiosity, emotional hook.
3. FORMAT: return ONLY the raw title text. No quotes, no "Here is the title:", no breakdown.
4. LENGTH: short and punchy (under 60 characters preferred)."""


def build_description_prompt(script: str, title: str) -> str:
    return f"""CONTEXT: You are an SEO expert for video content.
INPUT SCRIPT: \"\"\"{script[:5000]}\"\"\"
INPUT TITLE: "{title}"

TASK: create a concise description and hashtags.

RULES:
1. LANGUAGE: same as the script.
2. DESCRIPTION: 2-3 sentences, teasing the content without giving everything away. Include SEO keywords naturally.
3. HASHTAGS: exactly 4 relevant, high-traffic hashtags.

OUTPUT FORMAT (JSON):
{{"text": "...", "hashtags": ["tag1", "tag2", "tag3", "tag4"]}}"""


def build_thumbnail_layout_prompt(script: str, title: str, style_analysis: str) -> str:
    return f"""CONTEXT: You are a professional thumbnail designer.
INPUT SCRIPT: \"\"\"{script[:3000]}\"\"\"
INPUT TITLE: "{title}"
STYLE GUIDE: \"\"\"{style_analysis}\"\"\"

TASK:
1. Split the TITLE into at most 4 meaningful lines (semantic split), roughly balanced to fill the left side.
2. Write a highly detailed visual prompt (STRICTLY IN ENGLISH) for the BACKGROUND image.
   - Describe concrete scene details from the INPUT SCRIPT, not abstract concepts.
   - COMPOSITION: the main subject is on the RIGHT 30% of the frame; the LEFT 70% stays relatively empty or dark.
   - Use the lighting, colors and mood of the STYLE GUIDE.
   - 8k resolution, cinematic lighting. NO TEXT in the image.

OUTPUT FORMAT (JSON):
{{"lines": ["Line 1", "Line 2", "Line 3", "Line 4"], "backgroundPrompt": "..."}}"""


def build_translation_prompt(
    blocks: str,
    source_language: str,
    custom_prompt: str,
    target_language: str = "Vietnamese",
) -> str:
    return f"""You are a senior film subtitle translator from {source_language.title()} to {target_language}.
Task: translate the subtitle entries below into {target_language}.

Specific requirements:
1. {custom_prompt}
2. Keep the format of every entry (Index, Timecode) unchanged.
3. Return ONLY the {target_language} translation for the text of each subtitle. Do not include the source language.
4. NO explanations, NO introduction.
5. Keep the exact SRT structure, entries separated by one blank line:
Index
Timecode
Translated text

Input:
{blocks}"""
