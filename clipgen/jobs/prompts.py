"""Action-specific motion prompts for clip generation."""

from typing import Dict, Optional

from clipgen.jobs.models import ClipAction

ACTION_PROMPTS: Dict[ClipAction, str] = {
    ClipAction.SWIM_IDLE: (
        "Fish swimming slowly and gracefully, gentle undulating body motion, "
        "subtle fin movements, relaxed swimming, side view"
    ),
    ClipAction.SWIM_FAST: (
        "Fish swimming rapidly, powerful tail strokes, dynamic body wave, "
        "urgent swimming motion, side view"
    ),
    ClipAction.DASH: (
        "Fish performing quick burst of speed, explosive acceleration, "
        "streamlined body, side view"
    ),
    ClipAction.BITE: (
        "Fish biting and chomping, quick snapping jaw motion, mouth opening and "
        "closing aggressively, predatory strike, side view"
    ),
    ClipAction.TAKE_DAMAGE: (
        "Fish recoiling from impact, flinching motion, brief shake and recovery, "
        "hurt reaction, side view"
    ),
    ClipAction.DEATH: "Fish floating lifelessly, slow descent, fading motion, belly up, side view",
    ClipAction.SPECIAL: (
        "Fish performing special ability, glowing effect, magical aura, "
        "powerful energy, side view"
    ),
}

CHROMA_KEY_SUFFIX = (
    ", solid bright magenta background (#FF00FF), isolated on magenta, "
    "no other background elements, game sprite animation, clean edges"
)

DEFAULT_NEGATIVE_PROMPT = "blurry, distorted, low quality, text, watermark"


def build_clip_prompt(action: ClipAction, description: Optional[str] = None) -> str:
    prompt = ACTION_PROMPTS[action]
    if description:
        prompt = f"{description}, {prompt}"
    return prompt + CHROMA_KEY_SUFFIX
