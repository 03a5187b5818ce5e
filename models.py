"""
Data model shared by the stage functions and the app pipelines.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum


class SegmentStatus(str, Enum):
    IDLE = "idle"
    SPLITTING = "splitting"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    READY = "ready"


def new_segment_id(prefix: str = "tag") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass
class Idea:
    id: int
    title: str
    description: str
    characters_context: str = ""
    highlight_value: str = ""
    viral_potential: str = ""

    @classmethod
    def from_dict(cls, data: dict, fallback_id: int = 0) -> "Idea":
        return cls(
            id=int(data.get("id") or fallback_id),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            characters_context=str(data.get("charactersContext") or data.get("characters_context") or ""),
            highlight_value=str(data.get("highlightValue") or data.get("highlight_value") or ""),
            viral_potential=str(data.get("viralPotential") or data.get("viral_potential") or ""),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "charactersContext": self.characters_context,
            "highlightValue": self.highlight_value,
            "viralPotential": self.viral_potential,
        }


@dataclass
class CharacterProfile:
    """Character designed for the viral video funnel.

    facial_details describes neutral physical structure only (no expression, no situation).
    """
    name: str
    gender: str = ""
    country: str = ""
    age: str = ""
    body_type: str = ""
    facial_details: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "CharacterProfile":
        return cls(
            name=str(data.get("name") or ""),
            gender=str(data.get("gender") or ""),
            country=str(data.get("country") or ""),
            age=str(data.get("age") or ""),
            body_type=str(data.get("bodyType") or data.get("body_type") or ""),
            facial_details=str(data.get("facialDetails") or data.get("facial_details") or ""),
        )

    def describe(self) -> str:
        return (
            f"[Character: {self.name} | Gender: {self.gender} | Country: {self.country} | "
            f"Age: {self.age} | Body type: {self.body_type} | Face: {self.facial_details}]"
        )


@dataclass
class Character:
    """Character extracted for the ZenShot pipeline (face and hair features only)."""
    name: str
    gender: str = ""
    country: str = ""
    age: str = ""
    physique: str = ""
    features: str = ""
    last_clothing: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Character":
        return cls(
            name=str(data.get("name") or ""),
            gender=str(data.get("gender") or ""),
            country=str(data.get("country") or ""),
            age=str(data.get("age") or ""),
            physique=str(data.get("physique") or ""),
            features=str(data.get("features") or ""),
        )

    def describe(self) -> str:
        return f"{self.name}: {self.gender}, {self.country}, {self.age}, {self.physique}. {self.features}"


@dataclass
class ShotAction:
    """One shot extracted from a segment of the final script."""
    action: str
    voice_text: str = ""
    motion_prompt: str = ""
    image_prompt: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "ShotAction":
        return cls(
            action=str(data.get("action") or ""),
            voice_text=str(data.get("voiceText") or data.get("voice_text") or ""),
            motion_prompt=str(data.get("motionPrompt") or data.get("motion_prompt") or ""),
            image_prompt=str(data.get("imagePrompt") or data.get("image_prompt") or ""),
        )


@dataclass
class SceneAnalysis:
    breakdown: str
    count: int


@dataclass
class Skeleton:
    """Structure analysis of a competitor script."""
    content: str
    word_count: int
    style: str


@dataclass
class ThumbnailLayout:
    lines: list[str]
    background_prompt: str


@dataclass
class VideoDescription:
    text: str
    hashtags: list[str]


@dataclass
class SubtitleItem:
    index: str
    timecode: str
    text: str


@dataclass
class Segment:
    """Unit of pipeline work: a bounded chunk of source text plus everything derived from it."""
    text: str
    id: str = field(default_factory=new_segment_id)
    rows: list[str] = field(default_factory=list)
    prompts: list[str] = field(default_factory=list)
    video_prompts: list[str] = field(default_factory=list)
    actions: list[ShotAction] = field(default_factory=list)
    status: SegmentStatus = SegmentStatus.IDLE
    analysis: str | None = None
    scene_count: int | None = None
    action_count: int | None = None
    image_count: int = 10

    @property
    def last_prompt(self) -> str | None:
        return self.prompts[-1] if self.prompts else None


@dataclass
class PipelineDocumentState:
    """Root aggregate of one app instance."""
    segments: list[Segment] = field(default_factory=list)
    visual_style: str = ""
    characters: list = field(default_factory=list)
    loading: dict[str, bool] = field(default_factory=dict)

    def find(self, segment_id: str) -> tuple[int, Segment]:
        for i, seg in enumerate(self.segments):
            if seg.id == segment_id:
                return i, seg
        raise KeyError(f"Unknown segment '{segment_id}'")


@dataclass
class ViralDocumentState(PipelineDocumentState):
    """Funnel-shaped state of the viral video app."""
    source_script: str = ""
    skeleton: Skeleton | None = None
    ideas: list[Idea] = field(default_factory=list)
    selected_idea: int | None = None
    outlines: dict[int, str] = field(default_factory=dict)
    final_scripts: dict[int, str] = field(default_factory=dict)
    selected_style: str = ""
    output_language: str = "VN"


@dataclass
class ZenShotDocumentState(PipelineDocumentState):
    script: str = ""
    hook: str = ""
    hook_prompts: list[str] = field(default_factory=list)
