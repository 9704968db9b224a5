"""
query.py — validation of user filters and filtering of a Snapshot.

Identifier fields take comma-separated wildcard patterns ('?' = one character,
'*' = any run, case-insensitive, whole-string match). Latency bounds are
inclusive and apply on their own as well. A location of '--' means blank.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import InvalidQuery
from .models import IDENTIFIER_FIELDS, FilterQuery, LatencyRecord

BLANK_LOCATION = "--"
BOUND_PARAMETERS = {"minlatency": "min_latency", "maxlatency": "max_latency"}
ALLOWED_PARAMETERS = IDENTIFIER_FIELDS + tuple(BOUND_PARAMETERS)


def _list_re(chars: str, max_len: int) -> re.Pattern[str]:
    item = f"[{chars}]{{1,{max_len}}}"
    return re.compile(rf"^({item},)*{item}$", re.IGNORECASE | re.ASCII)


# SEED code lengths
FIELD_GRAMMAR: Dict[str, re.Pattern[str]] = {
    "network": _list_re("0-9a-z?*", 2),
    "station": _list_re("0-9a-z?*", 5),
    "location": _list_re("0-9a-z?*-", 2),
    "channel": _list_re("0-9a-z?*", 3),
}
BOUND_RE = re.compile(r"^[+-]?\d+$", re.ASCII)


@dataclass(frozen=True)
class Validation:
    ok: bool
    query: Optional[FilterQuery] = None
    error: Optional[str] = None


Params = Mapping[str, Union[str, Sequence[str]]]


def _value(raw: Union[str, Sequence[str]]) -> str:
    # repeated parameters (?network=GE&network=NL) behave like a comma list
    if isinstance(raw, str):
        return raw
    return ",".join(raw)


def validate_query(params: Params) -> Validation:
    fields: Dict[str, object] = {}
    for key, raw in params.items():
        if key not in ALLOWED_PARAMETERS:
            return Validation(False, error=f"Key {key} is not supported.")
        value = _value(raw).strip()
        if key in FIELD_GRAMMAR:
            if not FIELD_GRAMMAR[key].match(value):
                return Validation(False, error=f"Key {key} is not valid.")
            fields[key] = tuple(value.split(","))
        else:
            if not BOUND_RE.match(value):
                return Validation(False, error=f"Key {key} must be an integer.")
            fields[BOUND_PARAMETERS[key]] = int(value)
    return Validation(True, query=FilterQuery(**fields))


def parse_query(params: Params) -> FilterQuery:
    v = validate_query(params)
    if not v.ok:
        raise InvalidQuery(v.error)
    return v.query


# ---------------- Matching ----------------
def wildcard_to_regex(pattern: str) -> re.Pattern[str]:
    body = "".join(".*" if c == "*" else "." if c == "?" else re.escape(c) for c in pattern)
    return re.compile(body, re.IGNORECASE | re.DOTALL)


def _strip_blank(value: str) -> str:
    return value.replace(BLANK_LOCATION, "")


def _compile(query: FilterQuery) -> List[Tuple[str, List[re.Pattern[str]]]]:
    compiled = []
    for name in IDENTIFIER_FIELDS:
        pats = query.patterns(name)
        if not pats:
            continue
        if name == "location":
            pats = tuple(_strip_blank(p) for p in pats)
        compiled.append((name, [wildcard_to_regex(p) for p in pats]))
    return compiled


def _field_value(rec: LatencyRecord, name: str) -> str:
    value = getattr(rec, name)
    return _strip_blank(value) if name == "location" else value


def filter_records(records: Sequence[LatencyRecord], query: FilterQuery) -> Tuple[LatencyRecord, ...]:
    """Stable filter; the snapshot order (sorted or not) is kept."""
    records = tuple(records)
    if query.is_empty:
        return records

    matchers = _compile(query)
    lo, hi = query.min_latency, query.max_latency

    def keep(rec: LatencyRecord) -> bool:
        if lo is not None and rec.latency < lo:
            return False
        if hi is not None and rec.latency > hi:
            return False
        for name, regexes in matchers:
            value = _field_value(rec, name)
            if not any(rx.fullmatch(value) for rx in regexes):
                return False
        return True

    return tuple(r for r in records if keep(r))
