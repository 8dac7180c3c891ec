"""Canonical spellings for identifiers, SQL types and default expressions.

Both snapshot producers (the live catalog reader and the model builder) pass
their raw strings through these functions so that the differ compares like
with like. Nothing here raises: text that is not recognized is returned
unchanged apart from whitespace and case folding.
"""

import re
from typing import Optional, Tuple

_WHITESPACE = re.compile(r"\s+")
_TYPE_PARAMS = re.compile(r"\(([^)]*)\)")
_STRING_LITERAL = re.compile(r"('(?:[^']|'')*')")
_CAST = re.compile(
    r"::\s*(?:"
    r"character varying|double precision|bit varying"
    r"|timestamp(?:\s*\(\d+\))? with(?:out)? time zone"
    r"|time(?:\s*\(\d+\))? with(?:out)? time zone"
    r"|\"?[\w.]+\"?"
    r")(?:\s*\(\s*\d+(?:\s*,\s*\d+)?\s*\))?(?:\[\])*",
    re.IGNORECASE,
)
_NOW = re.compile(r"\bnow\s*\(\s*\)|\bcurrent_timestamp\b", re.IGNORECASE)

TYPE_ALIASES = {
    "character varying": "varchar",
    "character": "char",
    "bpchar": "char",
    "bit varying": "varbit",
    "timestamp without time zone": "timestamp",
    "timestamp with time zone": "timestamptz",
    "time without time zone": "time",
    "time with time zone": "timetz",
    "double precision": "double",
    "float8": "double",
    "real": "float4",
    "integer": "int4",
    "int": "int4",
    "smallint": "int2",
    "bigint": "int8",
    "boolean": "bool",
    "decimal": "numeric",
}

# Precision/scale implied by a bare type name, matching what the catalog
# reports for the same column.
_IMPLIED_DETAILS = {
    "int2": (None, 16, 0),
    "int4": (None, 32, 0),
    "int8": (None, 64, 0),
    "double": (None, 53, None),
    "float4": (None, 24, None),
    "varchar": (255, None, None),
    "char": (1, None, None),
}

DATETIME_TYPES = frozenset({"timestamp", "timestamptz", "time", "timetz"})
LENGTH_TYPES = frozenset({"varchar", "char", "bit", "varbit"})
NUMERIC_TYPES = frozenset({"numeric"})
INTEGER_TYPES = frozenset({"int2", "int4", "int8"})

TypeDetails = Tuple[Optional[int], Optional[int], Optional[int]]


def normalize_identifier(value: Optional[str]) -> Optional[str]:
    """Lower-case and trim an identifier, dropping surrounding double quotes."""
    if value is None:
        return None
    return value.strip().strip('"').lower()


def collapse_whitespace(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def normalize_data_type(value: Optional[str]) -> Optional[str]:
    """
    Map a type spelling to its canonical base token.

    Parameters are removed (``varchar(50)`` -> ``varchar``) and verbose
    spellings are folded (``timestamp(3) with time zone`` -> ``timestamptz``).
    Array suffixes survive the mapping (``integer[]`` -> ``int4[]``).
    """
    if value is None:
        return None
    text = collapse_whitespace(value).lower()
    if not text:
        return text

    array_suffix = ""
    while text.endswith("[]"):
        array_suffix += "[]"
        text = text[:-2].rstrip()

    base = collapse_whitespace(_TYPE_PARAMS.sub("", text))
    return TYPE_ALIASES.get(base, base) + array_suffix


def extract_data_type_details(value: Optional[str]) -> TypeDetails:
    """
    Parse ``(character_length, numeric_precision, numeric_scale)`` from a type.

    ``varchar(50)`` gives ``(50, None, None)``, ``numeric(10,2)`` gives
    ``(None, 10, 2)``; bare integer types give the precision the catalog
    reports for them so that ``int4`` and ``integer`` compare equal.
    """
    if not value:
        return None, None, None

    base = normalize_data_type(value)
    raw = collapse_whitespace(value).lower()
    params = _parse_params(raw)

    if not params:
        if raw.split("(")[0].strip() == "decimal":
            return None, 18, 2
        return _IMPLIED_DETAILS.get(base, (None, None, None))

    if base in LENGTH_TYPES:
        return params[0], None, None
    if base in NUMERIC_TYPES:
        scale = params[1] if len(params) > 1 else 0
        return None, params[0], scale
    if base in INTEGER_TYPES:
        scale = params[1] if len(params) > 1 else 0
        return None, params[0], scale
    return None, None, None


def extract_datetime_precision(value: Optional[str]) -> Optional[int]:
    """Fractional-second precision of a time type; 6 when left unspecified."""
    base = normalize_data_type(value)
    if base not in DATETIME_TYPES:
        return None
    params = _parse_params(collapse_whitespace(value).lower())
    return params[0] if params else 6


def normalize_default(value: Optional[str]) -> Optional[str]:
    """
    Canonicalize a column default expression.

    Blank input means "no default" and becomes ``None``. Wrapping parentheses
    and ``::type`` casts outside string literals are removed, whitespace is
    collapsed, and ``now()``/``CURRENT_TIMESTAMP`` become ``current_timestamp``.
    """
    if value is None:
        return None
    text = collapse_whitespace(value)
    if not text:
        return None

    previous = None
    while text != previous:
        previous = text
        text = _strip_wrapping_parens(text)
        text = _outside_literals(text, lambda part: _CAST.sub("", part)).strip()

    text = _outside_literals(text, lambda part: _NOW.sub("current_timestamp", part))
    return text or None


def _parse_params(text: str) -> Tuple[int, ...]:
    match = _TYPE_PARAMS.search(text)
    if not match:
        return ()
    values = []
    for part in match.group(1).split(","):
        part = part.strip()
        if not part.isdigit():
            return ()
        values.append(int(part))
    return tuple(values)


def _outside_literals(text: str, transform) -> str:
    parts = _STRING_LITERAL.split(text)
    # odd indexes are the captured string literals
    return "".join(part if i % 2 else transform(part) for i, part in enumerate(parts))


def _strip_wrapping_parens(text: str) -> str:
    while text.startswith("(") and text.endswith(")") and _closing_index(text) == len(text) - 1:
        text = text[1:-1].strip()
    return text


def _closing_index(text: str) -> int:
    """Index of the parenthesis closing the one at position 0, or -1."""
    depth = 0
    in_literal = False
    for i, char in enumerate(text):
        if char == "'":
            in_literal = not in_literal
        elif in_literal:
            continue
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1
