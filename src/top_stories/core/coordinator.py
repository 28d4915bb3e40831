"""Cache-or-fetch coordination for section articles.

For a requested section the coordinator serves cached articles while
they are younger than ``CACHE_DURATION_MS`` and otherwise fetches fresh
ones. A failed fetch always records the error; if the section has cached
articles they stay on display alongside it.

Load status and errors are kept per section, and the articles shown for
a section are always that section's cache entry, so concurrent loads of
different sections never see each other's results. Within one section
each load takes a generation number and a completion that is no longer
the latest for its section is dropped, so a slow, superseded response
cannot overwrite fresher state.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from ..errors import ErrorKind, TopStoriesAPIError, UnknownSectionError
from ..logging_config import get_logger
from ..models.news import Article, SECTIONS
from ..models.state import ArticlesView, ErrorInfo, Filters, LoadStatus, ServedArticle
from ..tools.cache import EMPTY_ARTICLES, ArticleCache
from .dates import format_date_time, format_time_ago
from .filters import apply_filters, get_unique_keywords, get_unique_locations


logger = get_logger("core.coordinator")

CACHE_DURATION_MS = 5 * 60 * 1000
FALLBACK_ERROR_MESSAGE = "Failed to fetch articles"
PERSIST_ERROR_MESSAGE = "Unable to save articles for offline reading."

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


class ArticleFetcher(Protocol):
    async def get_top_stories(self, section: str) -> List[Article]: ...


class ArticlesCoordinator:
    def __init__(self, cache: ArticleCache, fetcher: ArticleFetcher, clock: Clock = now_ms) -> None:
        self.cache = cache
        self._fetcher = fetcher
        self._clock = clock

        # The section the reader is looking at; last invocation wins.
        self.section: Optional[str] = None

        self._status: Dict[str, LoadStatus] = {}
        self._errors: Dict[str, ErrorInfo] = {}
        self._generation = 0
        self._latest: Dict[str, int] = {}
        self._filter_memo: Optional[Tuple[Tuple[Article, ...], Filters, Sequence[Article]]] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current_articles(self) -> Tuple[Article, ...]:
        if self.section is None:
            return EMPTY_ARTICLES
        return self.cache.get(self.section)

    @property
    def loading(self) -> bool:
        return self.status() is LoadStatus.LOADING

    @property
    def error(self) -> Optional[ErrorInfo]:
        if self.section is None:
            return None
        return self._errors.get(self.section)

    def status(self, section: Optional[str] = None) -> LoadStatus:
        section = section or self.section
        if section is None:
            return LoadStatus.IDLE
        return self._status.get(section, LoadStatus.IDLE)

    def is_cache_valid(self, section: Optional[str] = None) -> bool:
        section = section or self.section
        if section is None:
            return False
        last_fetch = self.cache.last_fetch_time(section)
        if last_fetch is None:
            return False
        return self._clock() - last_fetch < CACHE_DURATION_MS

    def filtered_articles(self, filters: Filters | None = None, section: Optional[str] = None) -> Sequence[Article]:
        """A section's articles (the current one by default) narrowed by ``filters``.

        The last result is reused while neither the article set (by
        identity) nor the filters change.
        """

        filters = filters or Filters()
        articles = self.cache.get(section) if section else self.current_articles
        memo = self._filter_memo
        if memo is not None and memo[0] is articles and memo[1] == filters:
            return memo[2]
        result = apply_filters(articles, filters)
        self._filter_memo = (articles, filters.model_copy(), result)
        return result

    def _serve(self, articles: Sequence[Article], now: datetime) -> List[ServedArticle]:
        return [
            ServedArticle(
                **article.model_dump(),
                published_ago=format_time_ago(article.published_date, now=now),
                published_display=format_date_time(article.published_date),
            )
            for article in articles
        ]

    def view(self, filters: Filters | None = None, section: Optional[str] = None) -> ArticlesView:
        section = section or self.section
        if section is None:
            return ArticlesView()

        articles = self.cache.get(section)
        error = self._errors.get(section)
        now = datetime.fromtimestamp(self._clock() / 1000, tz=timezone.utc)
        return ArticlesView(
            section=section,
            articles=self._serve(self.filtered_articles(filters, section), now),
            all_articles=self._serve(articles, now),
            loading=self.status(section) is LoadStatus.LOADING,
            error=error,
            status=self.status(section),
            is_cache_valid=self.is_cache_valid(section),
            showing_cached=error is not None and bool(articles),
            locations=get_unique_locations(articles),
            keywords=get_unique_keywords(articles),
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _next_generation(self, section: str) -> int:
        self._generation += 1
        self._latest[section] = self._generation
        return self._generation

    def set_current_from_cache(self, section: str) -> None:
        """Point the reader at ``section``; its cached articles (possibly none) are shown."""
        if section not in SECTIONS:
            raise UnknownSectionError(section)
        self.section = section

    def clear_error(self, section: Optional[str] = None) -> None:
        section = section or self.section
        if section is not None:
            self._errors.pop(section, None)

    def clear_articles(self) -> None:
        """Drop every cached section. Preferences are left alone."""
        self.cache.clear_all()
        # In-flight loads no longer match any generation and are dropped.
        self._latest = {}
        self._status = {}
        self._errors = {}

    def _cache_hit(self, section: str) -> None:
        self._next_generation(section)
        self.set_current_from_cache(section)
        self._errors.pop(section, None)
        self._status[section] = LoadStatus.READY

    def _pending(self, section: str) -> int:
        generation = self._next_generation(section)
        self.set_current_from_cache(section)
        self._errors.pop(section, None)
        self._status[section] = LoadStatus.LOADING
        return generation

    def _fulfilled(self, section: str, articles: Sequence[Article]) -> None:
        try:
            self.cache.put(section, articles, self._clock())
        except Exception as exc:
            logger.error("article_cache_persist_failed", section=section, error=str(exc))
            self._rejected(
                section,
                ErrorInfo(message=PERSIST_ERROR_MESSAGE, status=None, kind=ErrorKind.UNKNOWN.value),
            )
            return
        self._status[section] = LoadStatus.READY

    def _rejected(self, section: str, error: ErrorInfo) -> None:
        # Whatever the section has cached (possibly nothing) stays on display.
        self._errors[section] = error
        self._status[section] = LoadStatus.FAILED

    def _is_latest(self, section: str, generation: int) -> bool:
        return self._latest.get(section) == generation

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def load_articles(self, section: str, force_refresh: bool = False) -> None:
        if section not in SECTIONS:
            raise UnknownSectionError(section)

        if not force_refresh and self.is_cache_valid(section) and self.cache.get(section):
            self._cache_hit(section)
            logger.info(
                "load_articles_cache_hit",
                section=section,
                results=len(self.cache.get(section)),
            )
            return

        generation = self._pending(section)
        logger.info("load_articles_fetching", section=section, force_refresh=force_refresh)

        try:
            articles = await self._fetcher.get_top_stories(section)
        except TopStoriesAPIError as exc:
            error = exc.to_info()
        except Exception as exc:
            logger.error("load_articles_unexpected_error", section=section, error=str(exc))
            error = ErrorInfo(message=FALLBACK_ERROR_MESSAGE, status=None, kind=ErrorKind.UNKNOWN.value)
        else:
            if not self._is_latest(section, generation):
                logger.info("load_articles_superseded", section=section, outcome="fulfilled")
                return
            self._fulfilled(section, articles)
            logger.info(
                "load_articles_fetched",
                section=section,
                status=self.status(section).value,
                results=len(self.cache.get(section)),
            )
            return

        if not self._is_latest(section, generation):
            logger.info("load_articles_superseded", section=section, outcome="rejected")
            return
        self._rejected(section, error)
        logger.warning(
            "load_articles_failed",
            section=section,
            status=error.status,
            kind=error.kind,
            fallback_results=len(self.cache.get(section)),
        )

    async def refresh(self, section: Optional[str] = None) -> None:
        section = section or self.section
        if section is None:
            raise ValueError("No section has been loaded yet; pass one to refresh.")
        await self.load_articles(section, force_refresh=True)

    async def select_section(self, section: str) -> None:
        """Load ``section`` if it differs from the current one or was never loaded."""
        if section == self.section and self.status(section) is not LoadStatus.IDLE:
            return
        await self.load_articles(section)

    def request_load(self, section: str, force_refresh: bool = False) -> "asyncio.Task[None]":
        """Schedule a load on the running loop and return without waiting."""
        if section not in SECTIONS:
            raise UnknownSectionError(section)
        return asyncio.get_running_loop().create_task(self.load_articles(section, force_refresh))
