import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from ..logging_config import get_logger
from ..models.news import Article
from .storage import KeyValueStorage, MemoryStorage, clear_slice, load_slice, save_slice


logger = get_logger("tools.cache")

ARTICLES_SLICE = "articles"

# Shared so callers can compare by identity and skip recomputation.
EMPTY_ARTICLES: Tuple[Article, ...] = ()


class ArticleCache:
    """Durable per-section article cache.

    A section's articles and its last-fetch timestamp (epoch ms) are
    always written and cleared together. A mutation reaches memory only
    after the backing storage accepted it; the previous state is restored
    on construction.
    """

    def __init__(self, storage: KeyValueStorage | None = None) -> None:
        self._storage = storage if storage is not None else MemoryStorage()
        self._lock = threading.RLock()
        self._articles: Dict[str, Tuple[Article, ...]] = {}
        self._last_fetch: Dict[str, int] = {}
        self._restore()

    def _restore(self) -> None:
        state = load_slice(self._storage, ARTICLES_SLICE)
        if not state:
            return
        by_section = state.get("articles_by_section")
        fetch_times = state.get("last_fetch_time")
        if not isinstance(by_section, dict) or not isinstance(fetch_times, dict):
            logger.warning("article_cache_restore_skipped", reason="malformed slice")
            return

        for section, items in by_section.items():
            timestamp = fetch_times.get(section)
            if not isinstance(items, list) or not isinstance(timestamp, int):
                continue
            try:
                articles = tuple(Article.model_validate(item) for item in items)
            except ValidationError as exc:
                logger.warning("article_cache_restore_skipped", section=section, error=str(exc))
                continue
            self._articles[section] = articles
            self._last_fetch[section] = timestamp
        logger.info("article_cache_restored", sections=self.sections())

    def _persist(self, articles: Dict[str, Tuple[Article, ...]], last_fetch: Dict[str, int]) -> None:
        state: Dict[str, Any] = {
            "articles_by_section": {
                section: [article.model_dump(mode="json") for article in items]
                for section, items in articles.items()
            },
            "last_fetch_time": last_fetch,
        }
        save_slice(self._storage, ARTICLES_SLICE, state)

    def get(self, section: str) -> Tuple[Article, ...]:
        with self._lock:
            return self._articles.get(section, EMPTY_ARTICLES)

    def last_fetch_time(self, section: str) -> Optional[int]:
        with self._lock:
            return self._last_fetch.get(section)

    def put(self, section: str, articles: Iterable[Article], timestamp: int) -> Tuple[Article, ...]:
        stored = tuple(articles)
        with self._lock:
            updated_articles = {**self._articles, section: stored}
            updated_fetch = {**self._last_fetch, section: timestamp}
            self._persist(updated_articles, updated_fetch)
            self._articles = updated_articles
            self._last_fetch = updated_fetch
        logger.info("article_cache_put", section=section, articles=len(stored), timestamp=timestamp)
        return stored

    def clear_all(self) -> None:
        with self._lock:
            clear_slice(self._storage, ARTICLES_SLICE)
            self._articles = {}
            self._last_fetch = {}
        logger.info("article_cache_cleared")

    def sections(self) -> List[str]:
        """Sections that currently have cached articles."""
        with self._lock:
            return sorted(self._articles)

    def articles_by_section(self) -> Dict[str, Tuple[Article, ...]]:
        with self._lock:
            return dict(self._articles)

    def last_fetch_times(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._last_fetch)
