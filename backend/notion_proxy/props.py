"""
Notion property bag readers and writers.

Readers take a page object as returned by the Notion API and pull one
property out of it with a default. Writers build the `properties` payload
for pages.create / pages.update from a flat request body, driven by a
table of Field entries per entity.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Union

from .helpers import BadRequest

Number = Union[int, float]

RICH_TEXT_LIMIT = 2000
DEFAULT_RATING = 3

COMPLEXITY_LABELS = {1: "Trivial", 2: "Simple", 3: "Moderate", 4: "Involved", 5: "Extreme"}
PROFITABILITY_LABELS = {1: "Loss", 2: "Poor", 3: "Fair", 4: "Good", 5: "Excellent"}

_RATING_RE = re.compile(r"^\s*(\d+)\s*-\s*\S")
_DATE_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}(?:T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+\-]\d{2}:\d{2})?)?$"
)

# ---- Readers -----------------------------------------------------------------

def _prop(page: Dict[str, Any], name: str) -> Dict[str, Any]:
    return (page.get("properties") or {}).get(name) or {}


def _plain(segments: Optional[List[Dict[str, Any]]]) -> str:
    return "".join(seg.get("plain_text") or (seg.get("text") or {}).get("content", "") for seg in segments or [])


def read_title(page: Dict[str, Any], name: str, default: str = "Untitled") -> str:
    return _plain(_prop(page, name).get("title")) or default


def read_text(page: Dict[str, Any], name: str, default: str = "") -> str:
    return _plain(_prop(page, name).get("rich_text")) or default


def read_number(page: Dict[str, Any], name: str, default: Optional[Number] = None) -> Optional[Number]:
    value = _prop(page, name).get("number")
    return default if value is None else value


def read_select(page: Dict[str, Any], name: str, default: Optional[str] = None) -> Optional[str]:
    return (_prop(page, name).get("select") or {}).get("name") or default


def read_status(page: Dict[str, Any], name: str, default: str) -> str:
    return (_prop(page, name).get("status") or {}).get("name") or default


def read_date(page: Dict[str, Any], name: str) -> Optional[str]:
    return (_prop(page, name).get("date") or {}).get("start")


def read_checkbox(page: Dict[str, Any], name: str, default: bool = False) -> bool:
    value = _prop(page, name).get("checkbox")
    return default if value is None else bool(value)


def read_relation_id(page: Dict[str, Any], name: str) -> Optional[str]:
    relation = _prop(page, name).get("relation") or []
    return relation[0].get("id") if relation else None


def read_multi_select(page: Dict[str, Any], name: str) -> List[str]:
    return [opt["name"] for opt in _prop(page, name).get("multi_select") or [] if opt.get("name")]


def read_computed_number(page: Dict[str, Any], name: str, default: Number = 0) -> Number:
    """Number out of a formula or rollup property."""
    prop = _prop(page, name)
    inner = prop.get("formula") or prop.get("rollup") or {}
    value = inner.get("number")
    return default if value is None else value


def parse_rating(value: Any) -> int:
    """Leading integer of a "<n>-<Label>" rating string, else 3."""
    if isinstance(value, bool):
        return DEFAULT_RATING
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        m = _RATING_RE.match(value)
        if m:
            return int(m.group(1))
    return DEFAULT_RATING


def read_rating(page: Dict[str, Any], name: str) -> int:
    return parse_rating(read_select(page, name))

# ---- Value coercion ----------------------------------------------------------

def to_number(value: Any) -> Optional[Number]:
    """Numbers pass through, numeric strings are parsed, anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            n = float(s)
        except ValueError:
            return None
        if n != n or n in (float("inf"), float("-inf")):
            return None
        return int(n) if n.is_integer() and "." not in s and "e" not in s.lower() else n
    return None


def encode_rating(value: Any, labels: Dict[int, str]) -> Optional[str]:
    """Integer 1-5 (or its string) to its rating label; rating strings pass through."""
    if isinstance(value, str) and _RATING_RE.match(value):
        return value.strip()
    n = to_number(value)
    if n is not None and float(n).is_integer() and int(n) in labels:
        return f"{int(n)}-{labels[int(n)]}"
    return None

# ---- Writers -----------------------------------------------------------------

def title(text: str) -> Dict[str, Any]:
    return {"title": [{"text": {"content": text}}]}


def rich_text(text: Optional[str]) -> Dict[str, Any]:
    text = text or ""
    chunks = [text[i:i + RICH_TEXT_LIMIT] for i in range(0, len(text), RICH_TEXT_LIMIT)]
    return {"rich_text": [{"text": {"content": c}} for c in chunks]}


def number(value: Optional[Number]) -> Dict[str, Any]:
    return {"number": value}


def select(name: Optional[str]) -> Dict[str, Any]:
    return {"select": {"name": name} if name else None}


def status(name: str) -> Dict[str, Any]:
    return {"status": {"name": name}}


def date(start: Optional[str]) -> Dict[str, Any]:
    return {"date": {"start": start} if start else None}


def checkbox(value: Any) -> Dict[str, Any]:
    return {"checkbox": bool(value)}


def relation(page_id: Optional[str]) -> Dict[str, Any]:
    return {"relation": [{"id": page_id}] if page_id else []}


def multi_select(names: Iterable[str]) -> Dict[str, Any]:
    return {"multi_select": [{"name": n} for n in names]}

# ---- Partial updates ---------------------------------------------------------

@dataclass(frozen=True)
class Patch:
    """A value the caller supplied for a field; None inside means "clear it".

    A field the caller did not supply has no Patch at all.
    """

    value: Any

    @property
    def clears(self) -> bool:
        return self.value is None or (isinstance(self.value, str) and not self.value.strip())


def patch_of(data: Dict[str, Any], key: str) -> Optional[Patch]:
    if key not in data:
        return None
    return Patch(data[key])


class Field(NamedTuple):
    key: str
    prop: str
    kind: str
    labels: Optional[Dict[int, str]] = None


_SKIP = object()


def _validated_date(key: str, value: Any) -> str:
    if not isinstance(value, str) or not _DATE_RE.match(value.strip()):
        raise BadRequest(f"{key} must be an ISO8601 date, e.g. 2025-10-15")
    return value.strip()


def _names(key: str, value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise BadRequest(f"{key} must be a list of strings")
    return [v.strip() for v in value if v.strip()]


def _set(field: Field, value: Any) -> Any:
    kind = field.kind
    if kind == "title":
        if not isinstance(value, str) or not value.strip():
            raise BadRequest(f"{field.key} cannot be empty")
        return title(value.strip())
    if kind == "text":
        return rich_text(str(value))
    if kind == "number":
        n = to_number(value)
        return _SKIP if n is None else number(n)
    if kind == "select":
        return select(str(value).strip())
    if kind == "status":
        if not isinstance(value, str) or not value.strip():
            raise BadRequest(f"{field.key} cannot be empty")
        return status(value.strip())
    if kind == "date":
        return date(_validated_date(field.key, value))
    if kind == "checkbox":
        return checkbox(value)
    if kind == "multi_select":
        return multi_select(_names(field.key, value))
    if kind == "rating":
        label = encode_rating(value, field.labels or {})
        return _SKIP if label is None else select(label)
    raise ValueError(f"unknown field kind {kind!r}")


def _clear(field: Field) -> Any:
    kind = field.kind
    if kind in ("title", "status"):
        raise BadRequest(f"{field.key} cannot be empty")
    if kind == "text":
        return rich_text(None)
    if kind == "number":
        return number(None)
    if kind in ("select", "rating"):
        return select(None)
    if kind == "date":
        return date(None)
    if kind == "checkbox":
        return checkbox(False)
    if kind == "multi_select":
        return multi_select([])
    raise ValueError(f"unknown field kind {kind!r}")


def build_create(data: Dict[str, Any], fields: Iterable[Field]) -> Dict[str, Any]:
    """Properties for a new page: unsupplied, null and unparseable values are left out."""
    props: Dict[str, Any] = {}
    for field in fields:
        value = data.get(field.key)
        if value is None or (isinstance(value, str) and not value.strip() and field.kind != "text"):
            continue
        built = _set(field, value)
        if built is not _SKIP:
            props[field.prop] = built
    return props


def build_update(data: Dict[str, Any], fields: Iterable[Field]) -> Dict[str, Any]:
    """Property mutations for every supplied field; explicit null or "" clears."""
    props: Dict[str, Any] = {}
    for field in fields:
        patch = patch_of(data, field.key)
        if patch is None:
            continue
        built = _clear(field) if patch.clears else _set(field, patch.value)
        if built is not _SKIP:
            props[field.prop] = built
    return props
