"""Lenient parsing of client-supplied lists"""

import json
from typing import Any, List


def parse_id_list(value: Any) -> List[int]:
    """
    Accept ``[1, 2]``, ``"1,2"``, ``"[1,2]"`` or a single id and return ints.

    Raises:
        ValueError: an element is not an integer
    """
    if value is None or value == "":
        return []
    if isinstance(value, bool):
        raise ValueError("boolean is not an id")
    if isinstance(value, int):
        return [value]
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            value = json.loads(text)
        else:
            value = [part for part in text.split(",") if part.strip()]
    if not isinstance(value, (list, tuple, set)):
        raise ValueError(f"unsupported id list: {value!r}")
    ids: List[int] = []
    for item in value:
        if isinstance(item, bool):
            raise ValueError("boolean is not an id")
        ids.append(int(str(item).strip()))
    return ids


def parse_int_set(value: Any) -> List[int]:
    """Comma-separated status filters such as ``"1,5"``"""
    return sorted(set(parse_id_list(value)))
