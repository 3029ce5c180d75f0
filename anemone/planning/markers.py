"""Command markers in free text.

Two formats are recognised: ``$execute:<token>`` anywhere in prose, and
``$<token>`` lines following a ``Tools to use:`` header. Tokens match
regardless of case; unknown tokens are dropped and duplicates kept.
"""

import logging
import re
from typing import List, Optional, Tuple

from anemone.planning.commands import parse_command

logger = logging.getLogger(__name__)

TOOLS_SECTION_HEADER = "Tools to use:"

EXECUTE_MARKER_PATTERN = re.compile(r"\$execute:\s*([A-Za-z]+)", re.IGNORECASE)
TOOL_LINE_PATTERN = re.compile(r"^\$([A-Za-z]+)$")


def split_known(tokens: List[str]) -> Tuple[List[str], List[str]]:
    """Canonical tokens for known commands, and the unknown leftovers."""
    known: List[str] = []
    unknown: List[str] = []
    for token in tokens:
        command = parse_command(token)
        if command is None:
            unknown.append(token)
        else:
            known.append(command.value)
    return known, unknown


def extract_command_markers(text: Optional[str]) -> List[str]:
    if not text:
        return []
    known, unknown = split_known(EXECUTE_MARKER_PATTERN.findall(text))
    if unknown:
        logger.debug("Ignoring unknown command markers: %s", unknown)
    return known


def has_command_marker(text: Optional[str]) -> bool:
    return bool(extract_command_markers(text))


def extract_tool_lines(text: Optional[str]) -> List[str]:
    if not text:
        return []
    header = TOOLS_SECTION_HEADER.rstrip(":").lower()
    tokens: List[str] = []
    in_section = False
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.rstrip(":").strip().lower() == header:
            in_section = True
            continue
        if in_section:
            match = TOOL_LINE_PATTERN.match(stripped)
            if match:
                tokens.append(match.group(1))
    known, _ = split_known(tokens)
    return known


def parse_free_text_selection(text: Optional[str]) -> Tuple[List[str], str]:
    """Commands from prose: tool lines if present, else ``$execute:`` markers."""
    commands = extract_tool_lines(text)
    if commands:
        return commands, "tool_lines"
    return extract_command_markers(text), "execute_markers"
