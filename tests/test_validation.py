from stampkit.core.objects import Design, Logo, StraightLine
from stampkit.core.validation import STEPS, validate_design


def _design(*texts, logo=None):
    return Design(lines=tuple(StraightLine(text=t) for t in texts), logo=logo or Logo())


def test_steps():
    assert STEPS == ("text", "logo", "preview")


def test_text_step_requires_text():
    assert validate_design(_design("", "   "), "text") == ["Add at least one line of text to your stamp"]
    assert validate_design(_design("ACME"), "text") == []


def test_text_step_flags_long_lines():
    errors = validate_design(_design("ok", "x" * 31), "text")
    assert errors == ["Line 2 is too long. Keep it under 30 characters for better readability."]


def test_text_step_custom_limit():
    errors = validate_design(_design("abcdef"), "text", max_line_chars=5)
    assert errors == ["Line 1 is too long. Keep it under 5 characters for better readability."]


def test_logo_step():
    missing = _design("ACME", logo=Logo(enabled=True))
    assert validate_design(missing, "logo") == ["Please upload a logo image or disable the logo option"]
    assert validate_design(_design("ACME", logo=Logo(enabled=True, image="logo.png")), "logo") == []
    assert validate_design(_design("ACME"), "logo") == []


def test_preview_step():
    errors = validate_design(_design("", logo=Logo(enabled=True)), "preview")
    assert errors == [
        "Your stamp needs at least one line of text",
        "Logo option is enabled but no logo has been uploaded",
    ]


def test_unknown_step_passes():
    assert validate_design(_design(""), "checkout") == []
