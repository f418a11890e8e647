"""Checks run immediately after every external model call.

Each check returns ``Ok(value)`` or ``Err(kind, detail)`` so the calling flow decides
whether a violation is degraded, retried or raised.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, Union

from moonlight.flows.schemas import GeneratedFile

T = TypeVar("T")

_FENCE_RE = re.compile(r"^```(?:json)?\s*(?P<body>.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class ViolationKind(str, Enum):
    NO_OUTPUT = "no_output"
    NOT_JSON = "not_json"
    WRONG_SHAPE = "wrong_shape"
    MISSING_FIELD = "missing_field"
    EMPTY = "empty"
    FIELD_TYPE = "field_type"
    TOO_SMALL = "too_small"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    kind: ViolationKind
    detail: str


Result = Union[Ok[T], Err]


@dataclass(frozen=True)
class CodeProjectPayload:
    files: list[GeneratedFile]
    explanation: str | None
    legacy: bool = False


def parse_json_object(text: str | None) -> Result[dict[str, Any]]:
    """Parse the model's text answer as a JSON object, tolerating a Markdown code fence."""
    if text is None or not text.strip():
        return Err(ViolationKind.NO_OUTPUT, "The model returned no output")

    body = text.strip()
    fenced = _FENCE_RE.match(body)
    if fenced:
        body = fenced.group("body")

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        # Some models wrap the object in prose; fall back to the outermost braces
        start, end = body.find("{"), body.rfind("}")
        if start == -1 or end <= start:
            return Err(ViolationKind.NOT_JSON, "The model output is not JSON")
        try:
            payload = json.loads(body[start : end + 1])
        except json.JSONDecodeError as e:
            return Err(ViolationKind.NOT_JSON, f"The model output is not JSON: {e}")

    if not isinstance(payload, dict):
        return Err(ViolationKind.WRONG_SHAPE, f"Expected a JSON object, got {type(payload).__name__}")
    return Ok(payload)


def validate_code_project(payload: dict[str, Any]) -> Result[CodeProjectPayload]:
    """Validate a code project answer.

    Top-level problems come back as ``Err``; a file entry without string ``fileName`` and
    ``code`` is reported as ``Err(FIELD_TYPE)`` so the flow can treat it as fatal.
    """
    explanation = payload.get("explanation")
    if not isinstance(explanation, str):
        explanation = None

    files = payload.get("files")
    if files is None:
        legacy_code = payload.get("projectCode")
        if isinstance(legacy_code, str) and legacy_code.strip():
            return Ok(
                CodeProjectPayload(
                    files=[GeneratedFile(file_name="project.txt", code=legacy_code)],
                    explanation=explanation,
                    legacy=True,
                )
            )
        return Err(ViolationKind.MISSING_FIELD, "The model output has no 'files' array")
    if not isinstance(files, list):
        return Err(ViolationKind.WRONG_SHAPE, f"'files' must be an array, got {type(files).__name__}")
    if not files:
        return Err(ViolationKind.EMPTY, "The model returned an empty 'files' array")

    validated = []
    for index, entry in enumerate(files):
        file_name = entry.get("fileName") if isinstance(entry, dict) else None
        code = entry.get("code") if isinstance(entry, dict) else None
        if not isinstance(file_name, str) or not isinstance(code, str):
            return Err(
                ViolationKind.FIELD_TYPE,
                f"File #{index} must have string 'fileName' and 'code' fields, got {entry!r:.200}",
            )
        validated.append(GeneratedFile(file_name=file_name, code=code))

    return Ok(CodeProjectPayload(files=validated, explanation=explanation))


def validate_chat_output(payload: dict[str, Any], json_summary: bool = False) -> Result[dict[str, Any]]:
    """Validate a chat answer envelope ``{"summary": ..., "imageUrl"?: ...}``.

    When ``json_summary`` is set the summary must itself be a JSON string; structured
    summaries are serialised and plain text is wrapped so it always parses.
    """
    if "summary" not in payload:
        return Err(ViolationKind.MISSING_FIELD, "The model output has no 'summary'")

    summary = payload["summary"]
    if json_summary and isinstance(summary, (dict, list)):
        summary = json.dumps(summary, ensure_ascii=False)
    if not isinstance(summary, str):
        return Err(ViolationKind.FIELD_TYPE, f"'summary' must be a string, got {type(summary).__name__}")
    if not summary.strip():
        return Err(ViolationKind.EMPTY, "The model returned an empty 'summary'")

    if json_summary:
        try:
            json.loads(summary)
        except json.JSONDecodeError:
            summary = json.dumps({"summary": summary}, ensure_ascii=False)

    image_url = payload.get("imageUrl")
    if image_url is not None and not isinstance(image_url, str):
        return Err(ViolationKind.FIELD_TYPE, f"'imageUrl' must be a string, got {type(image_url).__name__}")

    return Ok({"summary": summary, "imageUrl": image_url or None})


def validate_image_media(data_uri: str | None, min_length: int) -> Result[str]:
    if not data_uri:
        return Err(ViolationKind.NO_OUTPUT, "The model did not return an image")
    if len(data_uri) < min_length:
        return Err(
            ViolationKind.TOO_SMALL,
            f"The returned image is suspiciously small ({len(data_uri)} < {min_length} characters)",
        )
    return Ok(data_uri)
