"""Decade prompt template for the Past Forward generator.

Every generation request uses the same fixed template, parameterised only by
the decade's display label.  The template asks for a photorealistic
re-imagining of the uploaded person, so results from different decades stay
comparable when laid out side by side in the album.

Template Structure::

    Reimagine the person in this photo in the style of the [Label].
    [Fixed: clothing / hairstyle / photo quality directive]
    [Fixed: photorealism directive]

Usage
-----
::

    prompt = build_decade_prompt("1970s")
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Fixed template sections.
# These are constants rather than configuration because they define what a
# "decade look" means for the whole album.
# ---------------------------------------------------------------------------

_STYLE_DIRECTIVE = (
    "This includes clothing, hairstyle, photo quality, and the overall aesthetic of that decade."
)

_REALISM_DIRECTIVE = "The output must be a photorealistic image showing the person clearly."


def build_decade_prompt(label: str) -> str:
    """Compile the generation prompt for one decade.

    The function is pure: the same label always yields the same prompt.

    Args:
        label: Display label of the decade (e.g. ``"1970s"``).  Surrounding
            whitespace is ignored.

    Returns:
        The prompt sentence sequence, separated by single spaces.

    Raises:
        ValueError: If ``label`` is blank.
    """
    stripped = label.strip()
    if not stripped:
        raise ValueError("A decade label is required to build a prompt")

    parts = [
        f"Reimagine the person in this photo in the style of the {stripped}.",
        _STYLE_DIRECTIVE,
        _REALISM_DIRECTIVE,
    ]
    return " ".join(parts)
