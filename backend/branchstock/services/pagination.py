# Overview: Offset pagination shared by list endpoints.

from __future__ import annotations

import math


def paginate(query, page: int = 1, limit: int = 10) -> tuple[list, dict]:
    """
    Run `query` for one page.

    Returns (rows, {"current", "pages", "total", "limit"}); pages is 0 for an
    empty result.
    """
    page = max(int(page or 1), 1)
    limit = max(int(limit or 1), 1)

    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()

    return rows, {
        "current": page,
        "pages": math.ceil(total / limit),
        "total": total,
        "limit": limit,
    }
