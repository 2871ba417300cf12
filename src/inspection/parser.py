# src/inspection/parser.py — v1
"""Parse raw backend answers into Inspection objects.

Two grammars are understood:

Tagged: the backend echoes the code it was sent (comments and blank lines
already stripped) and places four comment lines directly above each
problematic line::

    // @PROBLEM: Using if-else chain
    // @SOLUTION: Use switch expression
    // @INDICATOR: if
    // @SEVERITY: MIDDLE
    if (kind.equals("a")) {

JSON: an array of ``{"problem": {"position": {"startLine", "endLine"},
"description"}, "solution"}`` objects whose line numbers refer to the
``/* n */`` prefixes added to the code sent.

A malformed finding is logged and dropped; the remaining ones are kept.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Any, Iterator

from copilens.core.models import Inspection

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"^\s*//\s*@(PROBLEM|SOLUTION|INDICATOR|SYMBOL|SEVERITY):\s*(.*)$")
_SEVERITIES = ("HIGH", "MIDDLE", "LOW")
NULL_INDICATOR = "<null>"


class ParseFailure(ValueError):
    """A single finding in a backend answer is malformed."""


# === CODE LINE FILTERING ===


def iter_code_lines(lines: list[str]) -> Iterator[tuple[int, str]]:
    """Yield ``(index, line)`` for lines that are neither blank nor comments."""
    in_block = False
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("/*"):
            in_block = True
        if stripped and not in_block and not stripped.startswith("//"):
            yield i, line
        if stripped.endswith("*/"):
            in_block = False


def number_lines(lines: list[str], start_line: int = 0, end_line: int | None = None) -> str:
    """Prefix each line with its zero-based ``/* n */`` number."""
    last = len(lines) - 1 if end_line is None else min(end_line, len(lines) - 1)
    return "\n".join(f"/* {i} */ {lines[i]}" for i in range(start_line, last + 1))


def _is_code(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("//")


def shrink_start_line(lines: list[str], start: int) -> int:
    """First code line at or after `start`, -1 if there is none."""
    in_block = False
    for i in range(max(start, 0), len(lines)):
        stripped = lines[i].strip()
        if stripped.startswith("/*"):
            in_block = True
        if not in_block and _is_code(stripped):
            return i
        if stripped.endswith("*/"):
            in_block = False
    return -1


def shrink_end_line(lines: list[str], end: int) -> int:
    """Last code line at or before `end`, -1 if there is none."""
    in_block = False
    for i in range(min(end, len(lines) - 1), -1, -1):
        stripped = lines[i].strip()
        if stripped.endswith("*/"):
            in_block = True
        if not in_block and _is_code(stripped):
            return i
        if stripped.startswith("/*"):
            in_block = False
    return -1


# === TAGGED GRAMMAR ===


def _build_tagged(tags: dict[str, str], line: int, code: str) -> Inspection:
    description = tags.get("PROBLEM", "").strip()
    solution = tags.get("SOLUTION", "").strip()
    if not description:
        raise ParseFailure("missing @PROBLEM")
    if not solution:
        raise ParseFailure(f"missing @SOLUTION for {description!r}")
    indicator = tags.get("INDICATOR", tags.get("SYMBOL", "")).strip()
    severity = tags.get("SEVERITY", "").strip().upper()
    if severity not in _SEVERITIES:
        logger.debug("Unknown severity %r, using LOW", severity)
        severity = "LOW"
    return Inspection(
        description=description,
        solution=solution,
        indicator=indicator,
        severity=severity,
        code=code,
        start_line=line,
        end_line=line,
    )


def parse_tagged_response(
    raw: str, code_lines: list[str], first_line: int = 0
) -> list[Inspection]:
    """Parse the tagged grammar.

    Args:
        raw: Backend answer (echoed code plus tag comments).
        code_lines: Lines that were sent, before comment filtering.
        first_line: Document line of ``code_lines[0]``.

    Returns:
        Findings sorted by line, positioned on absolute document lines.
        Findings whose indicator is ``<null>`` are dropped.
    """
    code_index = [i for i, _ in iter_code_lines(code_lines)]
    pending: list[tuple[dict[str, str], int]] = []
    tags: dict[str, str] = {}
    echoed = 0
    for line in raw.splitlines():
        if not line.strip():
            continue
        match = _TAG_RE.match(line)
        if match:
            if match.group(1) == "PROBLEM" and tags:
                logger.warning("Dropping finding without code line: %s", tags)
                tags = {}
            tags[match.group(1)] = match.group(2)
            continue
        if tags:
            pending.append((tags, echoed))
            tags = {}
        echoed += 1
    if tags:
        logger.warning("Dropping trailing finding without code line: %s", tags)

    results: list[Inspection] = []
    for finding_tags, filtered_index in pending:
        if filtered_index >= len(code_index):
            logger.warning("Finding points past the code sent: %s", finding_tags)
            continue
        local = code_index[filtered_index]
        try:
            inspection = _build_tagged(finding_tags, first_line + local, code_lines[local])
        except ParseFailure as e:
            logger.warning("Invalid inspection dropped: %s", e)
            continue
        if inspection.indicator == NULL_INDICATOR:
            continue
        results.append(inspection)
    return sorted(results, key=lambda r: r.start_line)


# === JSON GRAMMAR ===


def _strip_fences(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = "\n".join(ln for ln in text.split("\n") if not ln.strip().startswith("```"))
    return text.strip()


def _build_json(item: Any, lines: list[str]) -> Inspection:
    if not isinstance(item, dict):
        raise ParseFailure(f"expected an object, got {type(item).__name__}")
    problem = item.get("problem") or {}
    if not isinstance(problem, dict):
        raise ParseFailure(f"problem is not an object: {item}")
    position = problem.get("position") or {}
    if not isinstance(position, dict):
        raise ParseFailure(f"position is not an object: {item}")
    description = str(problem.get("description") or "").strip()
    solution = str(item.get("solution") or "").strip()
    if position.get("startLine") is None or not description or not solution:
        raise ParseFailure(f"missing startLine, description or solution: {item}")
    try:
        start = int(position["startLine"])
        end = start if position.get("endLine") is None else int(position["endLine"])
    except (TypeError, ValueError) as e:
        raise ParseFailure(f"non-numeric position in {item}") from e

    start = shrink_start_line(lines, start)
    end = shrink_end_line(lines, max(end, start))
    if start < 0 or end < start:
        raise ParseFailure(f"position does not cover any code: {item}")
    severity = str(item.get("severity") or "LOW").upper()
    finding_id = str(uuid.uuid4())
    return Inspection(
        id=finding_id,
        description=description,
        solution=solution,
        severity=severity if severity in _SEVERITIES else "LOW",
        indicator=str(problem.get("indicator") or problem.get("symbol") or ""),
        code=str(problem.get("code") or finding_id),
        start_line=start,
        end_line=end,
    )


def parse_json_response(raw: str, lines: list[str]) -> list[Inspection]:
    """Parse the JSON grammar against the full document `lines`.

    An answer that is not a JSON array yields no findings.
    """
    try:
        data = json.loads(_strip_fences(raw))
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse inspection response: %s", e)
        logger.debug("Raw response: %s", raw)
        return []
    if not isinstance(data, list):
        logger.warning("Inspection response is not an array: %s", type(data).__name__)
        return []

    results: list[Inspection] = []
    for item in data:
        try:
            results.append(_build_json(item, lines))
        except ParseFailure as e:
            logger.warning("Invalid inspection dropped: %s", e)
    return sorted(results, key=lambda r: r.start_line)


def extract_inspections(
    raw: str,
    document_lines: list[str],
    start_line: int = 0,
    end_line: int | None = None,
) -> list[Inspection]:
    """Parse `raw` in whichever grammar it is written.

    `start_line`/`end_line` delimit the document lines that were sent; only
    the tagged grammar needs them, JSON answers carry absolute numbers.
    """
    if _strip_fences(raw).startswith("["):
        return parse_json_response(raw, document_lines)
    last = len(document_lines) - 1 if end_line is None else end_line
    return parse_tagged_response(raw, document_lines[start_line : last + 1], start_line)
