"""
Configuration settings for the prompt pipelines.
Values come from .env where noted; the Config class holds tunable defaults that
command line arguments can override.
"""

import os
import time
from dataclasses import dataclass, field
from typing import Callable

from dotenv import load_dotenv

load_dotenv()

# LLM provider selection (from .env); used by llm_utils
# TEXT_PROVIDER: "google" or "openai"
TEXT_PROVIDER = os.getenv("TEXT_PROVIDER", "google").lower()

# Model rank lists: cheapest/fastest first, most capable last. Hand-tuned per service.
GOOGLE_MODEL_FALLBACKS = {
    # Analysis / ideas / outline / script / characters / thumbnail
    "general": [
        "gemini-flash-latest",
        "gemini-1.5-flash",
        "gemini-2.0-flash-lite-preview-02-05",
        "gemini-2.5-flash",
        "gemini-2.0-flash-lite-001",
        "gemini-2.0-flash",
        "gemini-2.5-pro",
    ],
    # Row splitting / image and video prompts
    "visual": [
        "gemini-2.0-flash-lite-preview-02-05",
        "gemini-2.5-flash",
        "gemini-2.0-flash-lite-001",
        "gemini-2.0-flash-exp",
        "gemini-2.0-flash-001",
        "gemini-2.0-flash",
        "gemini-2.5-pro",
        "gemini-flash-latest",
    ],
    "translation": [
        "gemini-flash-latest",
        "gemini-2.0-flash",
    ],
}

OPENAI_MODEL_FALLBACKS = {
    "general": ["gpt-4o-mini", "gpt-4o"],
    "visual": ["gpt-4o-mini", "gpt-4o"],
    "translation": ["gpt-4o-mini"],
}


def get_model_rank(service: str, provider: str | None = None) -> list[str]:
    """Return the model rank list for a service module.

    MODEL_FALLBACKS_<SERVICE> in .env (comma separated) replaces the built-in list.
    """
    override = os.getenv(f"MODEL_FALLBACKS_{service.upper()}")
    if override:
        models = [m.strip() for m in override.split(",") if m.strip()]
        if models:
            return models
    prov = (provider or TEXT_PROVIDER).lower()
    table = OPENAI_MODEL_FALLBACKS if prov == "openai" else GOOGLE_MODEL_FALLBACKS
    if service not in table:
        raise ValueError(f"Unknown model service '{service}'. Must be one of: {sorted(table)}")
    return list(table[service])


def get_default_credential(provider: str | None = None) -> str | None:
    """Process-level fallback credential, read at call time so tests can patch the env."""
    prov = (provider or TEXT_PROVIDER).lower()
    if prov == "openai":
        key = os.getenv("OPENAI_API_KEY")
    else:
        key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    key = (key or "").strip()
    return key or None


# Auto-run failure policies
FAILURE_ASK = "ask"      # ask the caller (confirm_continue) whether to skip the segment
FAILURE_ABORT = "abort"  # stop the remaining pipeline
FAILURE_SKIP = "skip"    # skip the failed segment without asking


@dataclass
class AutoRunPolicy:
    """Rate-limiting and retry policy for auto-run mode.

    stage_delay is a deliberate pause between upstream calls, not a correctness requirement.
    """
    stage_delay: float = 15.0
    retry_delay: float = 15.0
    retries_per_stage: int = 1
    on_failure: str = FAILURE_ASK
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def wait(self, seconds: float) -> None:
        if seconds > 0:
            self.sleep(seconds)


class Config:
    # ZenShot pipeline
    zenshot_stage_delay = 15.0
    zenshot_image_count = 10  # Rows requested per segment when splitting

    # Visual script pipeline
    visual_stage_delay = 5.0

    # Viral video funnel
    viral_stage_delay = 5.0
    default_competitor_style = "Natural, viral"
    output_language = "VN"

    # Shared auto-run behavior
    retries_per_stage = 1
    on_failure = FAILURE_ASK

    # Generation
    temperature = 0.7
    translation_temperature = 0.3

    def policy_for(self, app: str) -> AutoRunPolicy:
        """Build the auto-run policy for one app ('zenshot', 'visual', 'viral')."""
        delays = {
            "zenshot": self.zenshot_stage_delay,
            "visual": self.visual_stage_delay,
            "viral": self.viral_stage_delay,
        }
        if app not in delays:
            raise ValueError(f"Unknown app '{app}'. Must be one of: {sorted(delays)}")
        delay = delays[app]
        return AutoRunPolicy(
            stage_delay=delay,
            retry_delay=delay,
            retries_per_stage=self.retries_per_stage,
            on_failure=self.on_failure,
        )


config = Config()
