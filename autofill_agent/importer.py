"""Hybrid config/test-value text format.

A payload is one JSON object (the automation config) optionally followed by
test-value lines, one raw entry per line. Blank lines and ``#`` comment lines
are ignored anywhere in the text.
"""

from __future__ import annotations

import json
from typing import Iterable, List, Sequence

from pydantic import ValidationError as PydanticValidationError

from .errors import FormatError
from .models import AutomationConfig, FormField, ImportResult

_decoder = json.JSONDecoder()

USERNAME_PLACEHOLDERS = ("{username}", "{email}")
PASSWORD_PLACEHOLDER = "{password}"
VALUE_PLACEHOLDER = "{value}"


def _kept_lines(text: str) -> List[str]:
    kept = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        kept.append(line)
    return kept


def _decode_leading_object(body: str):
    try:
        return _decoder.raw_decode(body)
    except json.JSONDecodeError as exc:
        if not body.rstrip().endswith("}"):
            raise FormatError(
                FormatError.STRUCTURAL,
                "Configuration must start with { and end with }: the JSON block is never closed",
            ) from exc
        raise FormatError(
            FormatError.SYNTAX,
            f"JSON syntax error: {exc.msg} (line {exc.lineno} column {exc.colno}). "
            "Please check for missing commas, brackets, or quotes.",
        ) from exc


def _validate(data: dict) -> None:
    url = data.get("url")
    if not isinstance(url, str) or not url.strip():
        raise FormatError(FormatError.INVALID_CONFIG, "Invalid configuration format: url is required")
    fields = data.get("fields")
    if not isinstance(fields, list):
        raise FormatError(FormatError.INVALID_CONFIG, "Invalid configuration format: fields must be a list")
    for index, field in enumerate(fields):
        if not isinstance(field, dict) or not field.get("selector") or not field.get("type"):
            raise FormatError(
                FormatError.INVALID_FIELD,
                f"Each field must have a selector and type (field {index + 1} does not)",
            )


def parse_import(text: str) -> ImportResult:
    body = "\n".join(_kept_lines(text)).strip()
    if not body.startswith("{"):
        raise FormatError(FormatError.STRUCTURAL, "Configuration must start with { and end with }")

    data, end = _decode_leading_object(body)
    rest = body[end:]
    closing_line, _, remainder = rest.partition("\n")
    if closing_line.strip():
        raise FormatError(
            FormatError.SYNTAX,
            f"JSON syntax error: unexpected text after the configuration: {closing_line.strip()!r}",
        )
    _validate(data)
    for index, field in enumerate(data["fields"]):
        field.setdefault("id", f"field-{index + 1}")
    try:
        config = AutomationConfig.model_validate(data)
    except PydanticValidationError as exc:
        raise FormatError(FormatError.INVALID_CONFIG, f"Invalid configuration format: {exc}") from exc

    test_values = [line.strip() for line in remainder.splitlines() if line.strip()]
    return ImportResult(config=config, test_values=test_values)


def export_config(config: AutomationConfig, test_values: Iterable[str] = ()) -> str:
    payload = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    text = json.dumps(payload, indent=2)
    values = [value for value in test_values if value.strip()]
    if values:
        text += "\n\n# Test values\n" + "\n".join(values)
    return text + "\n"


def _substitute(value: str, tokens: Sequence[str], index: int) -> str:
    if tokens:
        for placeholder in USERNAME_PLACEHOLDERS:
            value = value.replace(placeholder, tokens[0])
    if len(tokens) > 1:
        value = value.replace(PASSWORD_PLACEHOLDER, tokens[1])
    if index < len(tokens):
        value = value.replace(VALUE_PLACEHOLDER, tokens[index])
    return value


def apply_test_value(fields: Sequence[FormField], test_value: str) -> List[FormField]:
    """Return copies of ``fields`` with placeholders filled from one test-value line.

    ``{username}``/``{email}`` take the first comma-separated token,
    ``{password}`` the second, and ``{value}`` the token at the field's own
    position. Placeholders without a matching token are left as they are.
    """
    tokens = [token.strip() for token in test_value.split(",")]
    return [
        field.model_copy(update={"value": _substitute(field.value, tokens, index)})
        for index, field in enumerate(fields)
    ]
