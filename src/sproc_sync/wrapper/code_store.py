"""
Append-only buffer for generated Python code.
"""

from __future__ import annotations

from typing import List, Optional

PAGE_WIDTH = 100
INDENT = "    "


class PythonCodeStore:
    """
    Collects lines of Python code with explicit indentation levels.

    Lines are appended one at a time; `indent` and `dedent` change the level
    applied to subsequently appended lines.
    """

    def __init__(self, level: int = 0):
        self._lines: List[str] = []
        self._level = level

    def indent(self) -> None:
        self._level += 1

    def dedent(self) -> None:
        if self._level == 0:
            raise ValueError("Cannot dedent below level 0")
        self._level -= 1

    def append(self, line: Optional[str] = "") -> None:
        """Append a line at the current indentation level; blank lines carry no indentation."""
        if not line:
            self._lines.append("")
        else:
            self._lines.append(INDENT * self._level + line)

    def append_lines(self, lines: List[str]) -> None:
        for line in lines:
            self.append(line)

    def append_separator(self) -> None:
        """Append a separator comment spanning the page width."""
        prefix = INDENT * self._level + "# "
        self._lines.append(prefix + "-" * (PAGE_WIDTH - len(prefix)))

    def get_code(self) -> str:
        return "\n".join(line.rstrip() for line in self._lines) + "\n"
