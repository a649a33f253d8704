from __future__ import annotations

import json
from typing import Any, Iterable

from fastapi import HTTPException

MAX_PAGE_SIZE = 200


def parse_filter(filter_param: str | None, allowed: Iterable[str]) -> dict[str, str]:
    """Decode a JSON object filter, keeping only known keys with non-null values."""
    if not filter_param:
        return {}
    try:
        parsed = json.loads(filter_param)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="Invalid filter") from exc
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=400, detail="Filter must be a JSON object")
    return {key: str(parsed[key]) for key in allowed if parsed.get(key) is not None}


def page_bounds(skip: int, limit: int) -> tuple[int, int]:
    return max(0, skip), max(1, min(limit, MAX_PAGE_SIZE))


def list_response(
    items: list[Any], total: int, skip: int = 0, limit: int | None = None
) -> dict[str, Any]:
    return {
        "data": items,
        "total": total,
        "skip": skip,
        "limit": len(items) if limit is None else limit,
    }
