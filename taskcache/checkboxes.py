"""Markdown task-list checkbox coordinates.

``scan_checkboxes`` records, for every line that starts with ``- [ ]`` or
``- [x]`` (any indentation), the line number and the column of ``[``.
``toggle_checkbox`` flips exactly the character between the brackets of the
checkbox at a given index and leaves every other character alone.

Coordinates describe one specific content string. Rescan after any change to
the content; a toggle against coordinates from other content raises.
"""

import re
from dataclasses import dataclass

CHECKBOX_LINE = re.compile(r"^\s*-\s*\[[ xX]\]")
_LABEL_PREFIX = re.compile(r"^\s*-\s*\[[ xX]\]\s*")


@dataclass(frozen=True)
class CheckboxCoordinate:
    line: int
    char: int  # Column of "["
    label: str
    checked: bool


def scan_checkboxes(content: str) -> tuple[CheckboxCoordinate, ...]:
    coordinates = []
    for line_no, line in enumerate(content.split("\n")):
        if not CHECKBOX_LINE.match(line):
            continue
        char = line.index("[")
        coordinates.append(
            CheckboxCoordinate(
                line=line_no,
                char=char,
                label=_LABEL_PREFIX.sub("", line).strip(),
                checked=line[char + 1] != " ",
            )
        )
    return tuple(coordinates)


def toggle_checkbox(
    content: str,
    coordinates: tuple[CheckboxCoordinate, ...],
    index: int,
) -> str:
    """Return ``content`` with checkbox ``index`` flipped.

    Raises:
        IndexError: no checkbox at ``index``
        ValueError: ``coordinates`` do not describe ``content``
    """
    if index < 0 or index >= len(coordinates):
        raise IndexError(f"No checkbox at index {index}")
    coord = coordinates[index]

    lines = content.split("\n")
    if coord.line >= len(lines):
        raise ValueError(f"Stale checkbox coordinates: no line {coord.line}")
    line = lines[coord.line]
    if coord.char + 2 >= len(line) or line[coord.char] != "[" or line[coord.char + 2] != "]":
        raise ValueError(f"Stale checkbox coordinates for line {coord.line}")

    new_mark = "x" if line[coord.char + 1] == " " else " "
    lines[coord.line] = line[: coord.char + 1] + new_mark + line[coord.char + 2 :]
    return "\n".join(lines)
