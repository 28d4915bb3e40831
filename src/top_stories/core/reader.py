from typing import Optional

from ..config import settings
from ..logging_config import get_logger
from ..models.state import ArticlesView, Filters
from ..tools.cache import ArticleCache
from ..tools.nyt_client import NYTClient
from ..tools.storage import JsonFileStorage, KeyValueStorage, MemoryStorage
from .coordinator import ArticleFetcher, ArticlesCoordinator, Clock, now_ms
from .preferences import PreferencesStore


logger = get_logger("core.reader")


def build_storage() -> KeyValueStorage:
    if settings.state_file:
        return JsonFileStorage(settings.state_file)
    return MemoryStorage()


class NewsReader:
    """Ties the article coordinator to the user's stored preferences.

    Requests that omit a section or filters fall back to the ones the
    user last chose.
    """

    def __init__(self, coordinator: ArticlesCoordinator, preferences: PreferencesStore) -> None:
        self.coordinator = coordinator
        self.preferences = preferences

    @classmethod
    def from_settings(
        cls,
        fetcher: ArticleFetcher | None = None,
        storage: KeyValueStorage | None = None,
        clock: Clock = now_ms,
    ) -> "NewsReader":
        storage = storage if storage is not None else build_storage()
        fetcher = fetcher if fetcher is not None else NYTClient.from_settings()
        coordinator = ArticlesCoordinator(ArticleCache(storage), fetcher, clock=clock)
        preferences = PreferencesStore(storage, default_section=settings.default_section)
        logger.info(
            "news_reader_ready",
            persistent=isinstance(storage, JsonFileStorage),
            selected_section=preferences.selected_section,
        )
        return cls(coordinator, preferences)

    async def articles(
        self,
        section: Optional[str] = None,
        filters: Optional[Filters] = None,
        force_refresh: bool = False,
    ) -> ArticlesView:
        section = section or self.preferences.selected_section
        await self.coordinator.load_articles(section, force_refresh=force_refresh)
        return self.coordinator.view(
            filters if filters is not None else self.preferences.filters,
            section=section,
        )

    async def select_section(self, section: str) -> ArticlesView:
        self.preferences.set_selected_section(section)
        await self.coordinator.select_section(section)
        return self.coordinator.view(self.preferences.filters, section=section)

    def clear_articles(self) -> None:
        self.coordinator.clear_articles()
