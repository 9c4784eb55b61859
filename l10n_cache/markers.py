"""
Substitution-marker checks for translated strings.

Translated values are later handed to a formatter together with as many
arguments as the default-language source has distinct {N} markers. A value
that cannot be formatted that way must never reach the caller.
"""
import re
import string
from typing import List

from .logger import get_logger

logger = get_logger(__name__)

MARKER_PATTERN = re.compile(r"\{[0-9]+\}")
# An index, optionally with an alignment ("{0,5}", "{1,-8}") as String.Format allows
_MARKER_FIELD = re.compile(r"([0-9]+) *(?:, *-?[0-9]+ *)?")

MAX_REPAIR_PASSES = 32

MAX_CHECKED_MARKERS = 10

LRM = "\u200e"  # LEFT-TO-RIGHT MARK
RLM = "\u200f"  # RIGHT-TO-LEFT MARK

# Patterns seen in right-to-left translations: they look fine on screen while the
# underlying string is broken. Applied in order.
_RTL_FIXUPS = [
    (re.compile("'\\{" + LRM + "'\\{([0-9]+)" + RLM + "*"), LRM + "'{\\1}'" + RLM),
    (re.compile("'\\{" + LRM + "([0-9]+)\\}'" + RLM + "*"), LRM + "'{\\1}'" + RLM),
    (re.compile('"\\{' + LRM + '"\\{([0-9]+)' + RLM + "*"), LRM + '"{\\1}"' + RLM),
    (re.compile(" \\{" + LRM + " \\{([0-9]+)" + RLM + "*"), " " + LRM + "{\\1}" + RLM + " "),
    (re.compile("\\{" + LRM + "\\{([0-9]+)" + RLM + "*"), LRM + "{\\1}" + RLM),
    (re.compile("\\{" + LRM + "([0-9]+)\\}" + RLM + "*"), LRM + "{\\1}" + RLM),
    # doubled quote/brace pairs without any direction marks
    (re.compile(' "\\{"\\{([0-9]+)\\. '), " " + LRM + '"{\\1}"' + RLM + ". "),
    (re.compile(' "\\{"\\{([0-9]+) '), " " + LRM + '"{\\1}"' + RLM + " "),
    (re.compile(" ([0-9]+)\\}\\{\\{\\. "), " " + LRM + "{\\1}" + RLM + ". "),
    # repeated LTR marks inside a marker; the leading one is kept
    (re.compile(LRM + "\\{([0-9]+)" + LRM + "\\}" + LRM), LRM + "{\\1}"),
    (re.compile(LRM + "\\{([0-9]+)" + LRM + "\\}"), LRM + "{\\1}"),
]

# Bengali digits translated inside braces
_LOCALIZED_DIGITS = {f"{{{chr(0x09E6 + i)}}}": f"{{{i}}}" for i in range(10)}


def count_substitution_markers(source: str) -> int:
    """Number of distinct {N} markers in the text."""
    return len(set(MARKER_PATTERN.findall(source or "")))


def _fields_are_positional(value: str, markers_count: int) -> bool:
    # Formatter().parse raises ValueError on unbalanced braces. Every field must be
    # a plain ASCII index below markers_count, with an optional alignment.
    for _literal, field_name, format_spec, conversion in string.Formatter().parse(value):
        if field_name is None:
            continue
        match = _MARKER_FIELD.fullmatch(field_name)
        if match is None:
            return False
        if int(match.group(1)) >= markers_count:
            return False
        if conversion or (format_spec and ("{" in format_spec or "}" in format_spec)):
            return False
    return True


def check_substitution_markers(markers_count: int, value: str, unit_id: str = "", quiet: bool = True) -> bool:
    """
    True if value can be formatted with markers_count positional arguments.
    Zero markers means the value is never formatted, so anything goes.
    """
    if markers_count == 0:
        return True
    if markers_count > MAX_CHECKED_MARKERS:
        logger.warning(f"trans-unit {unit_id} has more than {MAX_CHECKED_MARKERS} distinct substitution markers!")
        return True
    try:
        valid = _fields_are_positional(value, markers_count)
    except ValueError:
        valid = False
    if not valid and not quiet:
        logger.warning(f"Translation of {unit_id} will cause crash")
        for line in describe_marker_context(unit_id, value):
            logger.debug(line)
    return valid


def _repair_pass(value: str) -> str:
    for pattern, replacement in _RTL_FIXUPS:
        value = pattern.sub(replacement, value)
    for broken, marker in _LOCALIZED_DIGITS.items():
        value = value.replace(broken, marker)
    return value


def fix_broken_formatting_string(value: str) -> str:
    """
    Repairs the mangled markers we know how to repair: direction-mark confusion
    around braces in RTL scripts and localized digits inside braces.
    Repairing an already valid or already repaired string changes nothing.
    """
    # One fixup can produce text that an earlier one matches; run to a fixed point
    fixed = value
    for _ in range(MAX_REPAIR_PASSES):
        repaired = _repair_pass(fixed)
        if repaired == fixed:
            break
        fixed = repaired
    else:
        logger.warning(f"Marker repair did not settle after {MAX_REPAIR_PASSES} passes: {value!r}")
    return fixed


def describe_marker_context(unit_id: str, value: str) -> List[str]:
    """
    The 3 characters before and 6 after each '{', non-printable ones as hex codes.
    Enough to show how a marker was mangled.
    """
    lines = []
    i = 0
    while i < len(value):
        if value[i] == "{":
            first = max(0, i - 3)
            last = min(i + 6, len(value) - 1)
            chars = []
            for ch in value[first:last + 1]:
                if 32 < ord(ch) < 127:
                    chars.append(ch)
                else:
                    chars.append(f"{ord(ch):04X}")
            lines.append(f"{unit_id}({i}): " + " ".join(chars))
            i = last
        i += 1
    return lines
