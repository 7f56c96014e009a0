# src/recipecore/prompts.py
"""
Prompt text used by the generation orchestrator.

The system instruction asks the model to terminate every finished answer
with an out-of-band completion sentinel. The sentinel is what lets the
continuation protocol tell a truncated answer from a complete one; it is
stripped from all text before anything reaches a caller or the history.
"""

from typing import Optional, Sequence

COMPLETION_SENTINEL = "<<<END_OF_RECIPE>>>"


def build_system_prompt(sentinel: str = COMPLETION_SENTINEL) -> str:
    """The fixed generation instruction that opens every inference sequence."""
    return "\n".join([
        "You are a helpful, safety-conscious recipe generator.",
        "Given a list of ingredients the user has on hand, produce:",
        "- a recipe title",
        "- 1-2 sentence summary",
        "- ingredients list (quantities if possible)",
        "- step-by-step instructions",
        "- optional tips and substitutions",
        "Format as plain text with clear sections.",
        f"At the very end of your response, append a single line containing {sentinel}. "
        "Do not output anything after this marker.",
    ])


def build_user_prompt(inputs: Sequence[str], constraints: Optional[str] = None) -> str:
    """Renders the user turn for a list of (already cleaned) ingredients."""
    listing = "\n".join(f"- {item.strip()}" for item in inputs)
    extra = f"\nConstraints or preferences: {constraints.strip()}" if constraints and constraints.strip() else ""
    return (
        f"Here are the ingredients I have:\n{listing}{extra}\n"
        "Generate one approachable recipe. If crucial items are missing, suggest substitutions."
    )


def build_continuation_prompt(sentinel: str = COMPLETION_SENTINEL) -> str:
    """The user turn appended to every continuation round."""
    return (
        "Continue exactly where you left off. Do not repeat completed sections. "
        "Finish any remaining sections. "
        f"When you are completely finished, append the end marker {sentinel}."
    )


# Effort instructions for the three recipe variants requested side by side.
VARIANT_PROMPTS = {
    "quick": (
        "Create a QUICK and EASY recipe that takes 15 minutes or less, uses minimal ingredients, "
        "and requires basic cooking skills. Focus on simple techniques and readily available ingredients."
    ),
    "balanced": (
        "Create a BALANCED recipe that takes 30-45 minutes, uses moderate cooking techniques, "
        "and provides good flavor with reasonable effort. Include some interesting techniques but keep it accessible."
    ),
    "gourmet": (
        "Create a GOURMET, HIGH-QUALITY recipe that showcases advanced cooking techniques, premium ingredients usage, "
        "and exceptional flavor development. This should be restaurant-quality with detailed techniques, even if it takes 60+ minutes."
    ),
}


def variant_constraints(variant: str, constraints: Optional[str] = None) -> str:
    """Joins caller constraints with the effort instruction of a variant."""
    effort = VARIANT_PROMPTS[variant]
    if constraints and constraints.strip():
        return f"{constraints.strip()}, {effort}"
    return effort
