"""Paginated job history, newest first."""

from __future__ import annotations

from typing import Iterable

from .models import HistoryPage
from .projection import summarize
from .registry import JobRecord


def list_history(records: Iterable[JobRecord], limit: int, offset: int) -> HistoryPage:
    """
    Order jobs newest first and cut one page out of the result.

    Jobs sharing a creation timestamp are ordered by registration, later
    registrations first. ``total`` counts every job regardless of the page
    window; an offset past the end yields an empty page.
    """
    limit = max(limit, 0)
    offset = max(offset, 0)
    ordered = sorted(records, key=lambda record: (record.created_at, record.sequence), reverse=True)
    page = ordered[offset : offset + limit]
    return HistoryPage(
        jobs=[summarize(record) for record in page],
        total=len(ordered),
        limit=limit,
        offset=offset,
    )
