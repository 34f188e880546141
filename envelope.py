"""
Uniform JSON envelope shared by every endpoint.

    {success, message, data?, error?: {code, details}, timestamp}

List endpoints add a ``pagination`` block.
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def success_response(data: Any = None, message: str = "Success") -> Dict[str, Any]:
    return {"success": True, "message": message, "data": data, "timestamp": now_iso()}


def error_response(message: str, code: str = "ERROR", details: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code}
    if details is not None:
        error["details"] = details
    return {"success": False, "message": message, "error": error, "timestamp": now_iso()}


def normalize_page(page: Optional[int], limit: Optional[int]) -> Tuple[int, int]:
    page = max(int(page or 1), 1)
    limit = int(limit or DEFAULT_PAGE_SIZE)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    return page, limit


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalItems": total,
        "itemsPerPage": limit,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


def paginated_response(items: List[Any], meta: Dict[str, Any], message: str = "Data retrieved successfully") -> Dict[str, Any]:
    body = success_response(items, message)
    body["pagination"] = meta
    return body
