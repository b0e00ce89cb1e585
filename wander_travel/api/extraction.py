"""Pull structured place records out of free-form model text.

The prompts ask the model to emit each recommended place as a single-line
JSON object inline with its narrative. This module finds those objects with a
single left-to-right scan (no regex over the whole text), validates each one
against the Stop schema and replaces the valid ones with a placeholder token
so the narrative can be displayed around them.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from wander_travel.api.errors import ExtractionFailure
from wander_travel.api.models import Stop, stop_validation_error

logger = logging.getLogger(__name__)

PLACEHOLDER = "|||LOCATION|||"
PREVIEW_CHARS = 150

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


class ScanState(Enum):
    NORMAL = "normal"
    IN_STRING = "in_string"
    ESCAPED = "escaped"


@dataclass
class Candidate:
    """A balanced ``{...}`` span; ``end`` is exclusive."""

    start: int
    end: int
    text: str


def scan_candidates(text: str) -> List[Candidate]:
    """Return every top-level balanced object literal in *text*.

    Quotes are only tracked while inside an object, so apostrophes or stray
    quotes in the surrounding narrative cannot flip the scanner into string
    mode. A brace left open at the end of the text is discarded.
    """
    candidates: List[Candidate] = []
    state = ScanState.NORMAL
    depth = 0
    start = -1

    for i, char in enumerate(text):
        if state is ScanState.ESCAPED:
            state = ScanState.IN_STRING
            continue

        if state is ScanState.IN_STRING:
            if char == "\\":
                state = ScanState.ESCAPED
            elif char == '"':
                state = ScanState.NORMAL
            continue

        # NORMAL
        if char == '"' and depth > 0:
            state = ScanState.IN_STRING
        elif char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                candidates.append(Candidate(start, i + 1, text[start:i + 1]))
                start = -1

    if depth > 0:
        logger.debug(f"Discarding unterminated record starting at offset {start}")
    return candidates


def _preview(text: str) -> str:
    if len(text) <= PREVIEW_CHARS:
        return text
    return text[:PREVIEW_CHARS] + "..."


@dataclass
class ExtractionResult:
    records: List[Stop] = field(default_factory=list)
    display_text: str = ""
    diagnostics: List[ExtractionFailure] = field(default_factory=list)
    candidates: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalLocations": len(self.records),
            "totalErrors": len(self.diagnostics),
            "totalCandidates": self.candidates,
            "errors": [d.to_dict() for d in self.diagnostics],
        }


class StructuredRecordExtractor:
    """Extracts Stop records from model text."""

    def __init__(
        self,
        placeholder: str = PLACEHOLDER,
        validator: Callable[[Any], Optional[str]] = stop_validation_error,
    ):
        self.placeholder = placeholder
        self.validator = validator

    def extract(self, text: Optional[str]) -> ExtractionResult:
        """Scan *text* and return (records, display text, diagnostics).

        Never raises: unparsable or invalid candidates are reported in
        ``diagnostics`` and left in the display text untouched.
        """
        if not text:
            return ExtractionResult(display_text=text or "")

        candidates = scan_candidates(text)
        result = ExtractionResult(candidates=len(candidates))
        valid_spans = []

        for index, candidate in enumerate(candidates):
            try:
                data = json.loads(candidate.text)
            except json.JSONDecodeError as e:
                result.diagnostics.append(
                    ExtractionFailure("parse_error", index, str(e), _preview(candidate.text))
                )
                continue

            reason = self.validator(data)
            if reason:
                result.diagnostics.append(
                    ExtractionFailure("invalid_structure", index, reason, _preview(candidate.text))
                )
                continue

            result.records.append(Stop.from_dict(data))
            valid_spans.append(candidate)

        result.display_text = self._replace_spans(text, valid_spans)

        if result.diagnostics:
            logger.info(
                f"Record extraction: {len(result.records)} valid, "
                f"{len(result.diagnostics)} rejected of {len(candidates)} candidates"
            )
            for failure in result.diagnostics[:3]:
                logger.debug(f"Rejected candidate {failure.index} ({failure.kind}): {failure.message}")
        return result

    def _replace_spans(self, text: str, spans: List[Candidate]) -> str:
        if not spans:
            return text
        parts = []
        cursor = 0
        for span in spans:
            parts.append(text[cursor:span.start])
            parts.append(self.placeholder)
            cursor = span.end
        parts.append(text[cursor:])
        return "".join(parts)


def parse_json_reply(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the first JSON object in a model reply, or None.

    A fenced ```json block wins; otherwise the first balanced object that
    parses is used.
    """
    if not text:
        return None

    match = _FENCED_JSON.search(text)
    if match:
        try:
            data = json.loads(match.group(1))
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            logger.debug("Fenced JSON block did not parse, scanning the reply instead")

    for candidate in scan_candidates(text):
        try:
            data = json.loads(candidate.text)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None
