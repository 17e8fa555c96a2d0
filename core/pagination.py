"""
Page/limit pagination shared by list endpoints.
"""
import math
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Query


def paginate(query: Query, page: int, limit: int) -> Tuple[List[Any], Dict[str, int]]:
    """
    Apply page/limit to a query.

    Args:
        query: Filtered and ordered query
        page: 1-based page number
        limit: Page size

    Returns:
        Tuple of (rows, pagination) where pagination is
        {page, limit, total, totalPages}
    """
    page = max(page, 1)
    limit = max(limit, 1)
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if total else 0,
    }


def empty_page(page: int, limit: int) -> Dict[str, int]:
    return {"page": max(page, 1), "limit": max(limit, 1), "total": 0, "totalPages": 0}
