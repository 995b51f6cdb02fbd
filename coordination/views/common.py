import math

from django.conf import settings
from rest_framework.exceptions import NotFound


def paginate(qs, page: int = 1, limit: int | None = None):
    """Slice ``qs`` and return ``(rows, pagination)``."""
    limit = min(limit or settings.DEFAULT_PAGE_LIMIT, settings.MAX_PAGE_LIMIT)
    page = page or 1
    total = qs.count()
    start = (page - 1) * limit
    rows = list(qs[start:start + limit])
    return rows, {'page': page, 'limit': limit, 'total': total, 'pages': math.ceil(total / limit) if total else 0}


def get_or_404(qs, pk, label: str):
    obj = qs.filter(pk=pk).first()
    if obj is None:
        raise NotFound(f"{label} not found")
    return obj


def iso(value):
    return value.isoformat() if value else None
