from __future__ import annotations

from typing import List

from stampkit.core.objects import Design

STEPS = ("text", "logo", "preview")


def _has_text(design: Design) -> bool:
    return any(line.text.strip() for line in design.lines)


def validate_design(design: Design, step: str, max_line_chars: int = 30) -> List[str]:
    """User-facing problems with `design` for a wizard step.

    Returns an empty list when the step is fine. Unknown steps are never
    rejected.
    """
    errors: List[str] = []

    if step == "text":
        if not _has_text(design):
            errors.append("Add at least one line of text to your stamp")
        for index, line in enumerate(design.lines):
            if len(line.text) > max_line_chars:
                errors.append(
                    f"Line {index + 1} is too long. Keep it under {max_line_chars} characters for better readability."
                )

    if step == "logo" and design.logo.enabled and not design.logo.image:
        errors.append("Please upload a logo image or disable the logo option")

    if step == "preview":
        if not _has_text(design):
            errors.append("Your stamp needs at least one line of text")
        if design.logo.enabled and not design.logo.image:
            errors.append("Logo option is enabled but no logo has been uploaded")

    return errors
