from datetime import datetime, timezone
from typing import Any, Optional, Union


def utc_now_iso() -> str:
    """Return current UTC time as ISO format string with timezone info."""
    return datetime.now(timezone.utc).isoformat()


def to_iso(value: Any) -> Optional[str]:
    """Render a datetime (or passthrough string) as an ISO timestamp."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return str(value)


def _safe_json_parse(response: Any):
    """Safely parse JSON response, returning None when the body is not JSON."""
    try:
        return response.json()
    except Exception:
        return None


def _response_excerpt(response: Any, limit: int = 300) -> str:
    """Short body excerpt for log and error messages."""
    text = getattr(response, "text", "") or ""
    if not isinstance(text, str):
        text = str(text)
    return text[:limit]


# qemu-img unit letters, binary multiples, expressed in gigabytes
_SIZE_UNITS_GB = {
    "K": 1 / 1024 ** 2,
    "M": 1 / 1024,
    "G": 1,
    "T": 1024,
}


def parse_size_gb(value: Any) -> Optional[Union[int, float]]:
    """
    Normalize a disk size to gigabytes.

    The agent reports sizes either as numbers (already in GB) or as
    qemu-img style strings ("20G", "20GB", "512M", "1.5T", "20GiB").
    Whole sizes come back as int, fractional ones as float rounded to
    three decimals.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")

    if isinstance(value, (int, float)):
        size = float(value)
    else:
        text = str(value).strip().upper()
        for suffix in ("IB", "B"):
            if text.endswith(suffix) and len(text) > len(suffix) and text[-len(suffix) - 1] in _SIZE_UNITS_GB:
                text = text[: -len(suffix)]
                break
        factor = 1
        if text and text[-1] in _SIZE_UNITS_GB:
            factor = _SIZE_UNITS_GB[text[-1]]
            text = text[:-1]
        size = float(text.strip()) * factor

    if size < 0:
        raise ValueError(f"Invalid size: {value!r}")
    size = round(size, 3)
    return int(size) if size.is_integer() else size
