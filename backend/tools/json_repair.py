"""
Repair and extract JSON from free-form model output.

The model is asked for a bare JSON object but sometimes wraps it in markdown,
adds prose, leaves trailing commas or breaks URLs across tokens. Each known
failure mode has its own pure ``str -> str`` pass. Passes run in order and the
text is decoded again after every pass, so well-formed output is never touched
by the more aggressive repairs.
"""

import json
import re
from typing import Any, Callable, NamedTuple, Optional, Sequence, Tuple

from ..utils.exceptions import ParseError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class RepairPass(NamedTuple):
    """A named text transformation tried before the next decode."""
    name: str
    apply: Callable[[str], str]


# ============================================================================
# HELPERS
# ============================================================================

_STRING_RE = re.compile(r'"(?:\\.|[^"\\])*"', re.DOTALL)


def _outside_strings(text: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` to the parts of ``text`` that are not double-quoted strings."""
    parts = []
    last = 0
    for match in _STRING_RE.finditer(text):
        parts.append(fn(text[last:match.start()]))
        parts.append(match.group(0))
        last = match.end()
    parts.append(fn(text[last:]))
    return "".join(parts)


def _next_significant(text: str, start: int) -> str:
    """First non-whitespace character at or after ``start``, or ''."""
    for ch in text[start:]:
        if not ch.isspace():
            return ch
    return ""


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _try_decode(text: str) -> Tuple[bool, Any]:
    # json.loads accepts NaN and Infinity by default; they must reach the repair passes
    try:
        return True, json.loads(text, strict=False, parse_constant=_reject_constant)
    except (json.JSONDecodeError, TypeError, ValueError):
        return False, None


# ============================================================================
# EXTRACTION PASSES
# ============================================================================

_FENCE_RE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)
_OPEN_FENCE_RE = re.compile(r"^```[ \t]*(?:json|JSON)?[ \t]*\n?")


def strip_code_fence(text: str) -> str:
    """Keep only the interior of a ```json fence; tolerate a missing closing fence."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    stripped = text.strip()
    if stripped.startswith("```"):
        return _OPEN_FENCE_RE.sub("", stripped).strip()
    return stripped


_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\u200b\ufeff]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Drop control and zero-width characters and collapse all whitespace runs."""
    text = re.sub(r"[\r\n\t]", " ", text)
    text = _CONTROL_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def slice_outer_object(text: str) -> str:
    """Cut everything before the first '{' and after the last '}'."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return text
    return text[start:end + 1]


# ============================================================================
# REPAIR PASSES
# ============================================================================

_TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")


def strip_trailing_commas(text: str) -> str:
    return _outside_strings(text, lambda part: _TRAILING_COMMA_RE.sub(r"\1", part))


_REPEATED_COMMA_RE = re.compile(r",(?:\s*,)+")


def collapse_repeated_commas(text: str) -> str:
    """``[1,, 2]`` -> ``[1, 2]``."""
    return _outside_strings(text, lambda part: _REPEATED_COMMA_RE.sub(",", part))


_LEADING_ARRAY_COMMA_RE = re.compile(r"\[(?:\s*,)+")


def drop_leading_array_commas(text: str) -> str:
    """``[, 1]`` -> ``[ 1]``."""
    return _outside_strings(text, lambda part: _LEADING_ARRAY_COMMA_RE.sub("[", part))


_UNQUOTED_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")


def quote_unquoted_keys(text: str) -> str:
    return _outside_strings(text, lambda part: _UNQUOTED_KEY_RE.sub(r'\1"\2"\3', part))


_SINGLE_QUOTED_RE = re.compile(r"'((?:[^'\\]|\\.)*)'")


def convert_single_quotes(text: str) -> str:
    """'value' -> "value" for keys and values written with single quotes."""
    return _outside_strings(text, lambda part: _SINGLE_QUOTED_RE.sub(r'"\1"', part))


_QUOTED_SCHEME_RE = re.compile(r'"(https?)"\s*:\s*//')
_SPACED_SCHEME_RE = re.compile(r"\b(https?):\s+//")


def repair_url_schemes(text: str) -> str:
    """``"https": //host`` and ``https: //host`` -> ``"https://host``."""
    text = _QUOTED_SCHEME_RE.sub(r'"\1://', text)
    return _SPACED_SCHEME_RE.sub(r"\1://", text)


_QUOTED_DAY_RE = re.compile(r'"Day"\s*"(\d+)"')
_DAY_NUMBER_RE = re.compile(r'Day\s*"(\d+)"')


def unquote_day_numbers(text: str) -> str:
    """``"Day" "3"`` -> ``"Day 3"`` and ``"Day "3""`` -> ``"Day 3"``."""
    text = _QUOTED_DAY_RE.sub(r'"Day \1"', text)
    return _DAY_NUMBER_RE.sub(r"Day \1", text)


_CONCATENATION_RE = re.compile(r'"\s*\+\s*"')


def join_concatenated_strings(text: str) -> str:
    """``"Eiffel " + "Tower"`` -> ``"Eiffel Tower"``."""
    return _CONCATENATION_RE.sub("", text)


_UNDEFINED_RE = re.compile(r"(?<![\w.])undefined(?=\s*[,}\]])")
_NAN_RE = re.compile(r"(?<![\w.])NaN(?=\s*[,}\]])")
_INFINITY_RE = re.compile(r"(?<![\w.])-?Infinity(?=\s*[,}\]])")


def replace_non_json_literals(text: str) -> str:
    """JavaScript-only values: undefined -> null, NaN -> 0, Infinity -> null."""
    def _replace(part: str) -> str:
        part = _UNDEFINED_RE.sub("null", part)
        part = _NAN_RE.sub("0", part)
        return _INFINITY_RE.sub("null", part)

    return _outside_strings(text, _replace)


_QUOTED_BOOLEAN_RE = re.compile(r'([:\[,]\s*)"(true|false)"(?=\s*[,}\]])')


def unquote_booleans(text: str) -> str:
    """``"open": "true"`` -> ``"open": true`` for values only, never keys."""
    return _QUOTED_BOOLEAN_RE.sub(r"\1\2", text)


_BACKSLASH_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|.?)", re.DOTALL)
_SIMPLE_ESCAPES = '"\\/bfnrt'


def _escape_backslash(match: "re.Match[str]") -> str:
    following = match.group(1)
    if len(following) == 5 or (following and following in _SIMPLE_ESCAPES):
        return match.group(0)
    return "\\\\" + following


def escape_stray_backslashes(text: str) -> str:
    """Double every backslash that does not start a valid JSON escape. Idempotent."""
    return _BACKSLASH_RE.sub(_escape_backslash, text)


def escape_inner_quotes(text: str) -> str:
    """
    Escape double quotes that sit inside a string value.

    A quote inside a string closes it only when the next significant character
    is a delimiter (``, : } ]``) or the end of text; any other quote is treated
    as literal and escaped. Already escaped quotes are left alone.
    """
    out = []
    in_string = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\" and in_string:
            out.append(text[i:i + 2])
            i += 2
            continue
        if ch == '"':
            if not in_string:
                in_string = True
                out.append(ch)
            elif _next_significant(text, i + 1) in ("", ",", ":", "}", "]"):
                in_string = False
                out.append(ch)
            else:
                out.append('\\"')
        else:
            out.append(ch)
        i += 1
    return "".join(out)


EXTRACTION_PASSES: Tuple[RepairPass, ...] = (
    RepairPass("strip_code_fence", strip_code_fence),
    RepairPass("normalize_whitespace", normalize_whitespace),
    RepairPass("slice_outer_object", slice_outer_object),
)

REPAIR_PASSES: Tuple[RepairPass, ...] = (
    RepairPass("collapse_repeated_commas", collapse_repeated_commas),
    RepairPass("drop_leading_array_commas", drop_leading_array_commas),
    RepairPass("strip_trailing_commas", strip_trailing_commas),
    RepairPass("quote_unquoted_keys", quote_unquoted_keys),
    RepairPass("convert_single_quotes", convert_single_quotes),
    RepairPass("repair_url_schemes", repair_url_schemes),
    RepairPass("unquote_day_numbers", unquote_day_numbers),
    RepairPass("join_concatenated_strings", join_concatenated_strings),
    RepairPass("replace_non_json_literals", replace_non_json_literals),
    RepairPass("unquote_booleans", unquote_booleans),
    RepairPass("escape_stray_backslashes", escape_stray_backslashes),
    RepairPass("escape_inner_quotes", escape_inner_quotes),
)

_TRAVEL_PLAN_RE = re.compile(r'"travelPlan"\s*:\s*(\{.*\})\s*\}\s*$', re.DOTALL)


# ============================================================================
# SANITIZER
# ============================================================================

class ResponseSanitizer:
    """
    Turns raw model text into a decoded JSON value.

    ``parse`` either returns the decoded value or raises ParseError; unparsed
    text is never returned as a success.
    """

    def __init__(
        self,
        extraction_passes: Sequence[RepairPass] = EXTRACTION_PASSES,
        repair_passes: Sequence[RepairPass] = REPAIR_PASSES
    ):
        self.extraction_passes = tuple(extraction_passes)
        self.repair_passes = tuple(repair_passes)

    def _run_passes(self, text: str, passes: Sequence[RepairPass]) -> Tuple[str, Optional[str], bool, Any]:
        for repair in passes:
            text = repair.apply(text)
            ok, value = _try_decode(text)
            if ok:
                return text, repair.name, True, value
        return text, None, False, None

    def _salvage_travel_plan(self, raw: str) -> Tuple[str, Optional[str], bool, Any]:
        """Re-wrap a trailing ``"travelPlan": {...}`` and repair it on its own."""
        match = _TRAVEL_PLAN_RE.search(normalize_whitespace(strip_code_fence(raw)))
        if not match:
            return raw, None, False, None
        candidate = '{"travelPlan":' + match.group(1) + "}"
        ok, value = _try_decode(candidate)
        if ok:
            return candidate, "salvage_travel_plan", True, value
        return self._run_passes(candidate, self.repair_passes)

    def _cascade(self, raw: str) -> Tuple[str, Optional[str], bool, Any]:
        text = raw.strip()
        ok, value = _try_decode(text)
        if ok:
            return text, "direct", True, value

        text, stage, ok, value = self._run_passes(text, self.extraction_passes + self.repair_passes)
        if ok:
            return text, stage, ok, value

        salvaged = self._salvage_travel_plan(raw)
        if salvaged[2]:
            return salvaged
        return text, None, False, None

    def extract_json(self, raw: str) -> str:
        """
        Return the text that decoded, or the fully repaired text if none did.

        Args:
            raw: Raw model output

        Returns:
            A string that should parse as JSON
        """
        text, _, _, _ = self._cascade(raw or "")
        return text

    def parse(self, raw: str) -> Any:
        """
        Decode model output, repairing it as needed.

        Args:
            raw: Raw model output

        Returns:
            The decoded JSON value

        Raises:
            ParseError: If no stage produced valid JSON; carries the raw text
        """
        _, stage, ok, value = self._cascade(raw or "")
        if not ok:
            logger.warning(
                "json_repair_failed",
                raw_length=len(raw or ""),
                raw_preview=(raw or "")[:200]
            )
            raise ParseError(
                "Failed to parse AI response after all cleaning attempts",
                raw_text=raw or ""
            )
        if stage != "direct":
            logger.info("json_repaired", stage=stage)
        return value


default_sanitizer = ResponseSanitizer()


def extract_json(raw: str) -> str:
    """Module-level shortcut for ``default_sanitizer.extract_json``."""
    return default_sanitizer.extract_json(raw)


def parse_model_json(raw: str) -> Any:
    """Module-level shortcut for ``default_sanitizer.parse``."""
    return default_sanitizer.parse(raw)
