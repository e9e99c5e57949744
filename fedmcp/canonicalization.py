"""
FedMCP Canonical JSON

Deterministic JSON serialization following the RFC 8785 (JCS) model.
Semantically identical values produce byte-identical output, independent
of construction order, so hashes and signatures are reproducible across
processes and implementations.
"""

import json
import math
from collections.abc import Mapping
from typing import Any, List

from .errors import CanonicalizationError

# Largest integer magnitude that survives an I-JSON round trip (2^53 - 1)
MAX_SAFE_INTEGER = 2 ** 53 - 1

# Containers may nest at most this deep, counting the outermost as level 1
MAX_NESTING_DEPTH = 256


def canonicalize(obj: Any) -> bytes:
    """
    Convert an object to canonical JSON bytes.

    Rules:
    - Object keys sorted by UTF-16 code units
    - No whitespace between tokens
    - UTF-8 encoding, no BOM, non-ASCII left unescaped
    - Control characters escaped as lowercase \\u00xx
    - Numbers in ECMAScript shortest round-trip form
    - Arrays preserve order
    - Objects and arrays nest at most MAX_NESTING_DEPTH levels

    Returns:
        UTF-8 encoded bytes of canonical JSON

    Raises:
        CanonicalizationError: if obj holds a value JSON cannot represent
    """
    parts: List[str] = []
    _write_value(obj, parts, 0)
    try:
        return "".join(parts).encode("utf-8")
    except UnicodeEncodeError as e:
        raise CanonicalizationError(f"String is not valid Unicode: {e}") from e


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode("utf-8")


def _write_value(value: Any, parts: List[str], depth: int) -> None:
    if value is None:
        parts.append("null")
    elif value is True:
        parts.append("true")
    elif value is False:
        parts.append("false")
    elif isinstance(value, int):
        parts.append(_format_integer(value))
    elif isinstance(value, float):
        parts.append(format_number(value))
    elif isinstance(value, str):
        parts.append(json.dumps(value, ensure_ascii=False))
    elif isinstance(value, Mapping):
        _check_depth(depth)
        _write_object(value, parts, depth + 1)
    elif isinstance(value, (list, tuple)):
        _check_depth(depth)
        _write_array(value, parts, depth + 1)
    else:
        raise CanonicalizationError(f"Cannot canonicalize type: {type(value).__name__}")


def _check_depth(depth: int) -> None:
    if depth >= MAX_NESTING_DEPTH:
        raise CanonicalizationError(f"Value nests deeper than {MAX_NESTING_DEPTH} levels")


def _write_object(obj: Mapping, parts: List[str], depth: int) -> None:
    for key in obj:
        if not isinstance(key, str):
            raise CanonicalizationError(
                f"Object keys must be strings, got {type(key).__name__}"
            )

    parts.append("{")
    for i, key in enumerate(sorted(obj, key=_utf16_sort_key)):
        if i:
            parts.append(",")
        parts.append(json.dumps(key, ensure_ascii=False))
        parts.append(":")
        _write_value(obj[key], parts, depth)
    parts.append("}")


def _write_array(arr, parts: List[str], depth: int) -> None:
    parts.append("[")
    for i, item in enumerate(arr):
        if i:
            parts.append(",")
        _write_value(item, parts, depth)
    parts.append("]")


def _utf16_sort_key(key: str) -> bytes:
    # Big-endian UTF-16 bytes compare in code unit order
    return key.encode("utf-16-be", "surrogatepass")


def _format_integer(value: int) -> str:
    if abs(value) > MAX_SAFE_INTEGER:
        raise CanonicalizationError(
            f"Integer {value} is outside the interoperable range (+/-(2^53 - 1))"
        )
    return str(int(value))


def format_number(value: float) -> str:
    """
    Format a float the way ECMAScript Number.prototype.toString does.

    Python's repr() already yields the shortest round-trip digits; only the
    placement of the decimal point and exponent differ.
    """
    if math.isnan(value) or math.isinf(value):
        raise CanonicalizationError(f"Non-finite number not allowed: {value}")
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    mantissa, _, exp = repr(abs(value)).lower().partition("e")
    int_part, _, frac_part = mantissa.partition(".")

    digits = int_part + frac_part
    leading = len(digits) - len(digits.lstrip("0"))
    digits = digits.strip("0")
    # value == 0.<digits> * 10 ** n
    n = len(int_part) + int(exp or 0) - leading
    k = len(digits)

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        text = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        text = digits[0]
        if k > 1:
            text += "." + digits[1:]
        text += ("e+" if e >= 0 else "e-") + str(abs(e))

    return sign + text
