"""Preserve developer-owned regions across regeneration.

Every generated file carries one region delimited by marker comments::

    // ============================================================
    // 🔒 CUSTOM CODE START
    // Add your custom code above this line
    // This section will be preserved during regeneration
    // ============================================================

    // 🔒 CUSTOM CODE END
    // ============================================================

Everything from the separator above the start marker through the separator
below the end marker is carried over byte for byte; the rest of the file
is regenerated.
"""

from __future__ import annotations

from typing import Literal

SEPARATOR = "// " + "=" * 60

Position = Literal["top", "bottom"]


def start_marker(marker_text: str = "CUSTOM CODE") -> str:
    return f"// 🔒 {marker_text} START"


def end_marker(marker_text: str = "CUSTOM CODE") -> str:
    return f"// 🔒 {marker_text} END"


def _is_separator(line: str) -> bool:
    stripped = line.strip()
    return stripped.startswith("// ===") and set(stripped[3:]) == {"="}


def extract_custom_code(text: str, marker_text: str = "CUSTOM CODE") -> str | None:
    """Return the preserved region of ``text``, or None if it has none."""
    begin = text.find(start_marker(marker_text))
    if begin == -1:
        return None
    finish = text.find(end_marker(marker_text), begin)
    if finish == -1:
        return None

    begin = text.rfind("\n", 0, begin) + 1
    if begin > 0:
        prev_start = text.rfind("\n", 0, begin - 1) + 1
        if _is_separator(text[prev_start:begin - 1]):
            begin = prev_start

    line_end = text.find("\n", finish)
    finish = len(text) if line_end == -1 else line_end
    if line_end != -1:
        next_end = text.find("\n", line_end + 1)
        next_end = len(text) if next_end == -1 else next_end
        if _is_separator(text[line_end + 1:next_end]):
            finish = next_end

    return text[begin:finish]


def create_custom_code_marker(
    position: Position = "bottom",
    marker_text: str = "CUSTOM CODE",
    include_instructions: bool = True,
) -> str:
    """An empty region ready to be filled in by hand."""
    lines = [SEPARATOR, start_marker(marker_text)]
    if include_instructions:
        where = "below" if position == "top" else "above"
        lines.append(f"// Add your custom code {where} this line")
        lines.append("// This section will be preserved during regeneration")
    lines.extend([SEPARATOR, "", end_marker(marker_text), SEPARATOR])
    return "\n".join(lines)


def merge_custom_code(
    generated: str,
    existing: str | None = None,
    position: Position = "bottom",
    marker_text: str = "CUSTOM CODE",
    include_instructions: bool = True,
) -> str:
    """Combine freshly generated text with the region from ``existing``.

    Running the merge again on its own output with the same ``generated``
    text returns the same bytes.
    """
    region = extract_custom_code(existing, marker_text) if existing else None
    if region is None:
        region = create_custom_code_marker(position, marker_text, include_instructions)
    body = generated.strip("\n")
    if position == "top":
        return f"{region}\n\n{body}\n"
    return f"{body}\n\n{region}\n"
