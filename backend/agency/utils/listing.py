from __future__ import annotations
from typing import Any, Callable, Dict, List, Tuple
from flask import request, abort
from sqlalchemy.orm import Query

from agency.config.pagination import normalize_pagination


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def build_list_payload(rows: List[Dict[str, Any]], total: int, limit: int, offset: int) -> Dict[str, Any]:
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows),
        },
    }


def paginated(q: Query, to_json: Callable[[Any], Dict[str, Any]]) -> Dict[str, Any]:
    """Page an ordered query from request args and serialize each row."""
    paged_q, total, limit, offset = apply_pagination(q)
    return build_list_payload([to_json(r) for r in paged_q.all()], total, limit, offset)


def empty_page() -> Dict[str, Any]:
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    return build_list_payload([], 0, limit, offset)
