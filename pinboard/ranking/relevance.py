"""
Related-pin relevance scoring.

Given a focal pin and a pool of candidate pins, score every candidate with a
fixed heuristic and return the most relevant ones.

Score formula:
  score = 10  * |shared tags|
        +  5  * |focal title words (len > 3) also in candidate title|
        +  2  * same_author
        + 0.5 * ln(candidate like_count + 1)

Items may be ORM objects, pydantic models or plain dicts. Missing fields
count as empty / zero; scoring never raises.
"""
import math
from typing import Any, Iterable, Mapping

TAG_WEIGHT = 10.0
TITLE_WORD_WEIGHT = 5.0
SAME_AUTHOR_BONUS = 2.0
POPULARITY_WEIGHT = 0.5
MIN_TITLE_WORD_LENGTH = 4     # words must be longer than 3 chars
DEFAULT_LIMIT = 12

_MISSING = object()


def _field(item: Any, *names: str, default: Any = None) -> Any:
    """Return the first present attribute / key among `names`."""
    for name in names:
        if isinstance(item, Mapping):
            value = item.get(name, _MISSING)
        else:
            value = getattr(item, name, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


def _item_id(item: Any) -> Any:
    return _field(item, "pin_id", "id")


def _tags(item: Any) -> set[str]:
    tags = _field(item, "tags", default=())
    if isinstance(tags, str):
        return {tags}
    return {t for t in tags if isinstance(t, str)}


def _title_words(item: Any) -> list[str]:
    title = _field(item, "title", default="")
    if not isinstance(title, str):
        return []
    return title.lower().split()


def _popularity(item: Any) -> float:
    raw = _field(item, "like_count", "likes", "popularity", default=0)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value) or value < 0:
        return 0.0
    return value


def score(focal: Any, candidate: Any) -> float:
    """
    Relevance of `candidate` to `focal` (non-negative).

    Title overlap is asymmetric: only focal words longer than three
    characters are considered, and each focal occurrence counts.
    """
    tag_overlap = len(_tags(focal) & _tags(candidate))

    candidate_words = set(_title_words(candidate))
    title_overlap = sum(
        1
        for word in _title_words(focal)
        if len(word) >= MIN_TITLE_WORD_LENGTH and word in candidate_words
    )

    total = tag_overlap * TAG_WEIGHT + title_overlap * TITLE_WORD_WEIGHT

    focal_author = _field(focal, "user_id", "author_id", "author")
    if focal_author is not None and focal_author == _field(
        candidate, "user_id", "author_id", "author"
    ):
        total += SAME_AUTHOR_BONUS

    total += math.log(_popularity(candidate) + 1) * POPULARITY_WEIGHT
    return total


def rank_with_scores(
    focal: Any,
    candidates: Iterable[Any],
    limit: int = DEFAULT_LIMIT,
) -> list[tuple[Any, float]]:
    """
    Score, filter and order `candidates`; returns (item, score) pairs.

    Candidates with the focal id and non-positive scores are dropped.
    Equal scores keep their candidate-pool order (sorted() is stable).
    """
    if limit <= 0:
        return []

    focal_id = _item_id(focal)
    scored = []
    for candidate in candidates:
        if focal_id is not None and _item_id(candidate) == focal_id:
            continue
        s = score(focal, candidate)
        if s > 0:
            scored.append((candidate, s))

    scored = sorted(scored, key=lambda pair: pair[1], reverse=True)
    return scored[:limit]


def rank(
    focal: Any,
    candidates: Iterable[Any],
    limit: int = DEFAULT_LIMIT,
) -> list[Any]:
    """Return up to `limit` candidates most related to `focal`, best first."""
    return [item for item, _ in rank_with_scores(focal, candidates, limit)]
