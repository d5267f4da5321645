"""
Defensive parsing of language-model output that should contain one JSON object.
strip fences -> first '{' .. last '}' -> json.loads -> (one repair pass) -> json.loads,
then strict jsonschema validation. Repair is best effort; the schema decides.
"""
import json
import logging
import re
from typing import Any, Dict

from jsonschema import ValidationError, validate

logger = logging.getLogger(__name__)

_FENCE_START = re.compile(r"^```(?:json|JSON)?\s*")
_FENCE_END = re.compile(r"\s*```$")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_ ]*?)(\s*:)")
_BARE_VALUE = re.compile(r"(:\s*)([A-Za-z_][^,}\]\"\n]*?)(\s*[,}\]])")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_STRING_LITERAL = re.compile(r'("(?:\\.|[^"\\])*")')
_JSON_LITERALS = {"true", "false", "null"}


def strip_markdown_fences(text: str) -> str:
    content = (text or "").strip()
    if content.startswith("```"):
        content = _FENCE_START.sub("", content)
        content = _FENCE_END.sub("", content)
    return content.strip()


def extract_json_span(text: str) -> str:
    """Substring between the first '{' and the last '}' (inclusive); '' if there is none."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return ""
    return text[start:end + 1]


def _quote_bare_value(m: re.Match) -> str:
    value = m.group(2).strip()
    if value in _JSON_LITERALS:
        return m.group(0)
    return f'{m.group(1)}"{value}"{m.group(3)}'


def repair_json_text(text: str) -> str:
    """Quote bare keys and bare scalar values, single -> double quotes, drop trailing commas."""
    s = text
    if "'" in s and '"' not in s:
        s = s.replace("'", '"')
    # string literals are copied as-is; only the text between them is rewritten
    parts = _STRING_LITERAL.split(s)
    for i in range(0, len(parts), 2):
        part = _BARE_KEY.sub(lambda m: f'{m.group(1)}"{m.group(2).strip()}"{m.group(3)}', parts[i])
        part = _BARE_VALUE.sub(_quote_bare_value, part)
        parts[i] = _TRAILING_COMMA.sub(r"\1", part)
    return "".join(parts)


def parse_llm_json(text: str) -> Dict[str, Any]:
    """Return the JSON object embedded in model output. Raises ValueError when it cannot be recovered."""
    span = extract_json_span(strip_markdown_fences(text))
    if not span:
        raise ValueError("no JSON object in model output")
    try:
        data = json.loads(span)
    except json.JSONDecodeError as first_error:
        repaired = repair_json_text(span)
        try:
            data = json.loads(repaired)
        except json.JSONDecodeError as exc:
            raise ValueError(f"unparsable JSON after repair: {exc}") from first_error
        logger.info("json_repair: repaired model output")
    if not isinstance(data, dict):
        raise ValueError("model output JSON is not an object")
    return data


def parse_and_validate(text: str, schema: Dict[str, Any]) -> Dict[str, Any]:
    """parse_llm_json + jsonschema validation. Raises ValueError on any shape mismatch."""
    data = parse_llm_json(text)
    try:
        validate(instance=data, schema=schema)
    except ValidationError as exc:
        raise ValueError(f"model output does not match schema: {exc.message}") from exc
    return data
