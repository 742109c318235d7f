import re
import jsonpickle
from decimal import ROUND_CEILING, Decimal, InvalidOperation
from datetime import datetime, timezone
from typing import Any, Dict, List


# Kubernetes quantity suffixes to multipliers
_QUANTITY_SUFFIXES = {
    "": 1,
    "m": Decimal("0.001"),
    "k": 1000,
    "M": 1000**2,
    "G": 1000**3,
    "T": 1000**4,
    "P": 1000**5,
    "E": 1000**6,
    "Ki": 1024,
    "Mi": 1024**2,
    "Gi": 1024**3,
    "Ti": 1024**4,
    "Pi": 1024**5,
    "Ei": 1024**6,
}

_QUANTITY_PATTERN = re.compile(r"^([+-]?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)\s*([A-Za-z]*)$")


def now() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_quantity(quantity: Any) -> int:
    """Parse a Kubernetes quantity (e.g. "1Gi", "500M", "1e3") to a whole number of bytes.

    Fractional results are rounded up, as the API server does for storage.

    Raises:
        ValueError: If the quantity is empty or malformed.
    """
    if isinstance(quantity, (int, float)) and not isinstance(quantity, bool):
        return int(Decimal(str(quantity)).to_integral_value(rounding=ROUND_CEILING))
    if not quantity:
        raise ValueError("Quantity cannot be empty")

    text = str(quantity).strip()
    match = _QUANTITY_PATTERN.match(text)
    if not match:
        raise ValueError(f"Invalid quantity: {quantity}")

    number, suffix = match.group(1), match.group(2)
    if suffix not in _QUANTITY_SUFFIXES:
        raise ValueError(f"Unknown quantity suffix: {suffix}")
    if suffix and re.search(r"[eE]", number):
        raise ValueError(f"Invalid quantity: {quantity}")

    try:
        value = Decimal(number) * Decimal(_QUANTITY_SUFFIXES[suffix])
    except InvalidOperation:
        raise ValueError(f"Invalid quantity: {quantity}")
    return int(value.to_integral_value(rounding=ROUND_CEILING))


def sort_dict_keys(d):
    """Recursively sort dictionary keys and handle nested structures."""
    if isinstance(d, dict):
        return {key: sort_dict_keys(value) for key, value in sorted(d.items())}
    elif isinstance(d, list):
        return [sort_dict_keys(item) for item in d]
    else:
        return d


def canonicalize_dict(data):
    """
    Returns a canonical JSON representation of a dictionary.

    The JSON string uses sorted keys, which ensures that the representation
    stays the same even when key order varies.
    """
    return jsonpickle.dumps(sort_dict_keys(data), unpicklable=False)


def serialize(obj: Any) -> Any:
    """Convert a kubernetes_asyncio model tree to its API (camelCase) dictionary form.

    Plain dictionaries are taken to be in API form already and are copied
    as they are, so spec fragments and typed models can be mixed. Same output as
    `ApiClient.sanitize_for_serialization`, without needing an `ApiClient`
    (and its aiohttp session) where no API connection exists.
    """
    if obj is None:
        return None
    if isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (list, tuple)):
        return [serialize(item) for item in obj]
    if isinstance(obj, dict):
        return {key: serialize(value) for key, value in obj.items()}
    if hasattr(obj, "openapi_types") and hasattr(obj, "attribute_map"):
        return {
            obj.attribute_map[attr]: serialize(getattr(obj, attr))
            for attr in obj.openapi_types
            if getattr(obj, attr) is not None
        }
    raise TypeError(f"Cannot serialize {type(obj)}")


def prune(data: Any) -> Any:
    """Drop None values, empty maps and empty lists, the way the API server omits them."""
    if isinstance(data, dict):
        pruned = {}
        for key, value in data.items():
            value = prune(value)
            if value is None or value == {} or value == []:
                continue
            pruned[key] = value
        return pruned
    if isinstance(data, list):
        return [prune(item) for item in data]
    return data


def sort_env_vars(env: List[Dict]) -> List[Dict]:
    """Stable sort of env entries by name."""
    return sorted(env, key=lambda e: e["name"] if isinstance(e, dict) else e.name)


def upsert_condition(conds, newc):
    """In-memory merge by .type. Only bump lastTransitionTime when status flips."""
    conds = list(conds or [])
    for i, c in enumerate(conds):
        if c.get("type") == newc["type"]:
            ltt = c.get("lastTransitionTime") or now()
            if c.get("status") != newc["status"]:
                ltt = now()
            merged = {**c, **newc, "lastTransitionTime": ltt}
            conds[i] = merged
            break
    else:
        conds.append({**newc, "lastTransitionTime": now()})
    return conds
