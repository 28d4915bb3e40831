"""Exact-match article filtering and filter option derivation.

Matching is case-sensitive equality against facet entries; there is no
substring or fuzzy matching. Empty or whitespace-only filter values leave
the input untouched and return the very same sequence.
"""

from typing import Any, Dict, List, Sequence

from ..models.news import Article
from ..models.state import Filters


def _filter_by_facet(articles: Sequence[Article], value: str | None, facet: str) -> Sequence[Article]:
    if not value or not value.strip():
        return articles
    target = value.strip()
    return [article for article in articles if target in getattr(article, facet)]


def filter_by_location(articles: Sequence[Article], location: str | None) -> Sequence[Article]:
    """Keep articles whose ``geo_facet`` contains ``location`` verbatim."""
    return _filter_by_facet(articles, location, "geo_facet")


def filter_by_keywords(articles: Sequence[Article], keywords: str | None) -> Sequence[Article]:
    """Keep articles whose ``des_facet`` contains ``keywords`` verbatim."""
    return _filter_by_facet(articles, keywords, "des_facet")


def apply_filters(articles: Sequence[Article], filters: Filters | Dict[str, Any] | None) -> Sequence[Article]:
    if filters is None:
        return articles
    if not isinstance(filters, Filters):
        filters = Filters.model_validate(filters)

    filtered = filter_by_location(articles, filters.location)
    return filter_by_keywords(filtered, filters.keywords)


def get_unique_locations(articles: Sequence[Article]) -> List[str]:
    return sorted({geo for article in articles for geo in article.geo_facet})


def get_unique_keywords(articles: Sequence[Article]) -> List[str]:
    return sorted({keyword for article in articles for keyword in article.des_facet})
