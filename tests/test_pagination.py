"""Unit tests for page window arithmetic."""

import pytest

from pinboard.config import settings
from pinboard.pagination import page_window


@pytest.mark.parametrize(
    ("page", "limit", "expected"),
    [
        (1, 20, (0, 20)),
        (3, 20, (40, 20)),
        (0, 10, (0, 10)),
        (-4, 10, (0, 10)),
        (2, 0, (1, 1)),
    ],
)
def test_page_window(page: int, limit: int, expected: tuple[int, int]) -> None:
    assert page_window(page, limit) == expected


def test_limit_is_capped() -> None:
    offset, limit = page_window(2, settings.max_page_size + 50)
    assert limit == settings.max_page_size
    assert offset == settings.max_page_size
