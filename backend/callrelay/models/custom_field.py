import enum
from typing import Any, Dict, Optional


class FieldShape(enum.Enum):
    """How a candidate stores a custom field. The CRM does not commit to one."""

    FLAT_STRING = "direct"
    KEYED_MAP = "obj-map"
    KEY_VALUE_ARRAY = "kv-array"


# Order in which a prior value is looked up on a candidate detail document.
READ_ORDER = (FieldShape.FLAT_STRING, FieldShape.KEYED_MAP, FieldShape.KEY_VALUE_ARRAY)

# Order in which update bodies are tried when persisting a new value.
WRITE_ORDER = (FieldShape.KEYED_MAP, FieldShape.KEY_VALUE_ARRAY, FieldShape.FLAT_STRING)


def _decode_flat(candidate: Dict[str, Any], field_key: str) -> Optional[str]:
    value = candidate.get(field_key)
    return value if isinstance(value, str) else None


def _decode_keyed_map(candidate: Dict[str, Any], field_key: str) -> Optional[str]:
    container = candidate.get("custom_fields")
    if not isinstance(container, dict):
        return None
    value = container.get(field_key)
    return value if isinstance(value, str) else None


def _decode_key_value_array(candidate: Dict[str, Any], field_key: str) -> Optional[str]:
    container = candidate.get("custom_fields")
    if not isinstance(container, list):
        return None
    for item in container:
        if not isinstance(item, dict):
            continue
        if item.get("key") == field_key or item.get("name") == field_key:
            value = item.get("value")
            return value if isinstance(value, str) else None
    return None


_DECODERS = {
    FieldShape.FLAT_STRING: _decode_flat,
    FieldShape.KEYED_MAP: _decode_keyed_map,
    FieldShape.KEY_VALUE_ARRAY: _decode_key_value_array,
}


def decode_field(shape: FieldShape, candidate: Dict[str, Any], field_key: str) -> Optional[str]:
    return _DECODERS[shape](candidate, field_key)


def read_field(candidate: Optional[Dict[str, Any]], field_key: str) -> str:
    if not candidate:
        return ""
    for shape in READ_ORDER:
        value = decode_field(shape, candidate, field_key)
        if value is not None:
            return value
    return ""


def encode_field(
    shape: FieldShape, field_key: str, value: str, owner_id: Optional[int] = None
) -> Dict[str, Any]:
    if shape == FieldShape.KEYED_MAP:
        body: Dict[str, Any] = {"custom_fields": {field_key: value}}
    elif shape == FieldShape.KEY_VALUE_ARRAY:
        body = {"custom_fields": [{"key": field_key, "value": value}]}
    else:
        body = {field_key: value}
    if owner_id:
        body["owner_id"] = owner_id
    return body


def append_line(prior: str, line: str) -> str:
    """Append-only, newline-delimited; prior content is always kept as the prefix."""
    if prior:
        return f"{prior}\n{line}"
    return line
