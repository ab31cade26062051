import re
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

_NUMERIC_PRICE = re.compile(r"^[\d,.\-]+$")


def ensure_dollar_sign(price: Any) -> str:
    """Prefix bare numeric prices with '$'.

    '19.99' -> '$19.99'; '$5' and free text such as 'Check price' are kept.
    """
    if price is None:
        return ""
    s = str(price).strip()
    if not s or s.startswith("$"):
        return s
    if _NUMERIC_PRICE.match(s):
        return f"${s}"
    return s


def normalize_tags(value: Any) -> List[str]:
    """Return trimmed, de-duplicated tags (first occurrence wins).

    Accepts a list or a comma-separated string; blanks are dropped.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        return []
    tags: List[str] = []
    seen = set()
    for item in items:
        if item is None:
            continue
        tag = str(item).strip()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        tags.append(tag)
    return tags


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def optional_text(value: Any) -> Optional[str]:
    s = clean_text(value)
    return s or None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_id() -> str:
    return str(uuid.uuid4())
