"""
Doc block parser for routine sources.

A routine source starts with a doc block that documents the routine and
declares its designation:

    /**
     * Selects the details of a user.
     *
     * Users that are blocked are included.
     *
     * @param p_usr_id The ID of the user.
     *
     * @type row1
     */
    create procedure abc_user_get_details(in p_usr_id @usr.usr_id%type@)
    ...

Designation tags take arguments for some designations:

    @type rows_with_key   col1,col2
    @type rows_with_index col1
    @type singleton0      int
    @type bulk_insert     tmp_table  key1,key2

A bare `@hidden` tag suppresses the wrapper method.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

DOC_BLOCK_PATTERN = re.compile(r"/\*\*(.*?)\*/", re.DOTALL)
TAG_PATTERN = re.compile(r"^@(\w+)\s*(.*)$")


@dataclass
class DocBlock:
    """Parsed documentation and tags of a routine source."""
    short_description: str = ""
    long_description: str = ""
    parameters: Dict[str, str] = field(default_factory=dict)
    designation: Optional[str] = None
    designation_args: List[str] = field(default_factory=list)
    hidden: bool = False


def _strip_comment_lines(body: str) -> List[str]:
    lines = []
    for line in body.splitlines():
        line = line.strip()
        if line.startswith("*"):
            line = line[1:]
            if line.startswith(" "):
                line = line[1:]
        lines.append(line.rstrip())

    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return lines


def parse_doc_block(source: str) -> DocBlock:
    """Parse the first doc block of a routine source; missing block gives an empty DocBlock."""
    match = DOC_BLOCK_PATTERN.search(source)
    if not match:
        return DocBlock()

    doc = DocBlock()
    text_lines: List[str] = []
    current_param: Optional[str] = None

    for line in _strip_comment_lines(match.group(1)):
        tag = TAG_PATTERN.match(line)
        if tag:
            name, rest = tag.group(1).lower(), tag.group(2).strip()
            current_param = None
            if name == "param":
                parts = rest.split(None, 1)
                if parts:
                    current_param = parts[0]
                    doc.parameters[current_param] = parts[1] if len(parts) > 1 else ""
            elif name == "type":
                parts = rest.split()
                if parts:
                    doc.designation = parts[0]
                    doc.designation_args = parts[1:]
            elif name == "hidden":
                doc.hidden = True
            continue

        if current_param is not None:
            if line:
                doc.parameters[current_param] += "\n" + line.strip()
            else:
                current_param = None
            continue

        text_lines.append(line)

    # Short description is the first paragraph, long description the rest.
    while text_lines and not text_lines[-1]:
        text_lines.pop()
    if "" in text_lines:
        split = text_lines.index("")
        short, long = text_lines[:split], text_lines[split + 1:]
    else:
        short, long = text_lines, []

    doc.short_description = " ".join(short).strip()
    doc.long_description = "\n".join(long).strip()
    return doc
