from typing import Any, Mapping, Optional


def _parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def resolve_owner(
    internal_extension: Optional[str],
    owner_map: Mapping[str, Any],
    default_owner_id: Any = None,
) -> Optional[int]:
    """Pick the CRM owner for a call; None means create the candidate unowned."""
    if internal_extension and internal_extension in owner_map:
        owner_id = _parse_int(owner_map[internal_extension])
        if owner_id is not None:
            return owner_id
    return _parse_int(default_owner_id) or None
