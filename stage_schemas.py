"""
JSON schemas for the structured generation stages.
Pass these to ModelClient.generate(response_json_schema=...) for structured output.
"""

# --- Ideas (viral funnel, step 2) ---
IDEAS_SCHEMA = {
    "type": "array",
    "title": "video_ideas",
    "items": {
        "type": "object",
        "properties": {
            "id": {"type": "integer"},
            "title": {"type": "string"},
            "description": {"type": "string"},
            "charactersContext": {"type": "string"},
            "highlightValue": {"type": "string"},
            "viralPotential": {"type": "string"},
        },
        "required": ["id", "title", "description", "charactersContext", "highlightValue", "viralPotential"],
    },
}

# --- Character profiles (viral funnel) ---
CHARACTER_PROFILES_SCHEMA = {
    "type": "array",
    "title": "character_profiles",
    "items": {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "gender": {"type": "string"},
            "country": {"type": "string"},
            "age": {"type": "string"},
            "bodyType": {"type": "string", "description": "As short as possible, e.g. 'tall and thin'"},
            "facialDetails": {"type": "string", "description": "Neutral physical structure only, no expression or situation"},
        },
        "required": ["name", "gender", "country", "age", "bodyType", "facialDetails"],
    },
}

# --- Characters (ZenShot: face and hair features only) ---
CHARACTERS_SCHEMA = {
    "type": "array",
    "title": "characters",
    "items": {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "gender": {"type": "string"},
            "country": {"type": "string"},
            "age": {"type": "string"},
            "physique": {"type": "string"},
            "features": {"type": "string"},
        },
        "required": ["name", "gender", "country", "age", "physique", "features"],
    },
}

# --- Shot actions for one segment of the final script ---
SHOT_ACTIONS_SCHEMA = {
    "type": "array",
    "title": "shot_actions",
    "items": {
        "type": "object",
        "properties": {
            "action": {"type": "string", "description": "(Characters present): action summary"},
            "voiceText": {"type": "string", "description": "Direct dialogue only; empty when nobody speaks"},
            "motionPrompt": {"type": "string"},
            "imagePrompt": {"type": "string", "description": "Never empty"},
        },
        "required": ["action", "voiceText", "motionPrompt", "imagePrompt"],
    },
}

# --- Scene breakdown (visual script, step 1) ---
SCENE_ANALYSIS_SCHEMA = {
    "type": "object",
    "title": "scene_analysis",
    "properties": {
        "breakdown": {"type": "string"},
        "count": {"type": "integer"},
    },
    "required": ["breakdown", "count"],
}

# --- Plain string arrays: rows, image prompts, video prompts ---
STRING_LIST_SCHEMA = {
    "type": "array",
    "title": "string_list",
    "items": {"type": "string"},
}

# --- Description + hashtags ---
DESCRIPTION_SCHEMA = {
    "type": "object",
    "title": "video_description",
    "properties": {
        "text": {"type": "string"},
        "hashtags": {"type": "array", "items": {"type": "string"}, "minItems": 4, "maxItems": 4},
    },
    "required": ["text", "hashtags"],
}

# --- Thumbnail layout (consumed by the compositor) ---
THUMBNAIL_LAYOUT_SCHEMA = {
    "type": "object",
    "title": "thumbnail_layout",
    "properties": {
        "lines": {"type": "array", "items": {"type": "string"}, "minItems": 1, "maxItems": 4},
        "backgroundPrompt": {"type": "string", "description": "English background prompt, subject on the right 30%"},
    },
    "required": ["lines", "backgroundPrompt"],
}
