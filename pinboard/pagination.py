"""
Paging helpers shared by the feed, profile and search endpoints.
"""
from pinboard.config import settings


def page_window(page: int, limit: int) -> tuple[int, int]:
    """
    Translate a 1-based page number into (offset, limit).

    page < 1 is treated as the first page; limit is clamped to
    [1, settings.max_page_size].
    """
    page = max(page, 1)
    limit = max(1, min(limit, settings.max_page_size))
    return (page - 1) * limit, limit
