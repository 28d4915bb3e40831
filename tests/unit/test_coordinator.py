"""Unit tests for the article cache/fetch coordinator.

The fetcher and clock are stubbed so no network access happens and cache
expiry can be checked to the millisecond.
"""

import asyncio

import httpx
import pytest

from top_stories.core.coordinator import CACHE_DURATION_MS, PERSIST_ERROR_MESSAGE, ArticlesCoordinator
from top_stories.core.filters import apply_filters
from top_stories.core.preferences import PreferencesStore
from top_stories.core.reader import NewsReader
from top_stories.errors import ErrorKind, TopStoriesAPIError, UnknownSectionError
from top_stories.models.news import Article
from top_stories.models.state import Filters, LoadStatus
from top_stories.tools.cache import ArticleCache
from top_stories.tools.nyt_client import NYTClient
from top_stories.tools.storage import MemoryStorage


T0 = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class StubFetcher:
    """Returns queued outcomes in order; exceptions are raised."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls = []

    async def get_top_stories(self, section: str):
        self.calls.append(section)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def server_error() -> TopStoriesAPIError:
    return TopStoriesAPIError("Server is temporarily unavailable.", 500, ErrorKind.SERVER_ERROR)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache():
    return ArticleCache(MemoryStorage())


def test_fetches_when_nothing_cached(cache, clock) -> None:
    fetcher = StubFetcher([Article(id="1")])
    coordinator = ArticlesCoordinator(cache, fetcher, clock)

    asyncio.run(coordinator.load_articles("world"))

    assert fetcher.calls == ["world"]
    assert [a.id for a in coordinator.current_articles] == ["1"]
    assert coordinator.status("world") is LoadStatus.READY
    assert coordinator.loading is False
    assert coordinator.error is None
    assert cache.last_fetch_time("world") == T0
    assert coordinator.is_cache_valid("world")


def test_valid_cache_just_inside_window_skips_network(cache, clock) -> None:
    cache.put("world", [Article(id="cached")], T0)
    clock.now = T0 + CACHE_DURATION_MS - 1
    fetcher = StubFetcher()
    coordinator = ArticlesCoordinator(cache, fetcher, clock)

    asyncio.run(coordinator.load_articles("world"))

    assert fetcher.calls == []
    assert [a.id for a in coordinator.current_articles] == ["cached"]
    assert coordinator.status("world") is LoadStatus.READY


def test_expired_cache_triggers_fetch(cache, clock) -> None:
    cache.put("world", [Article(id="cached")], T0)
    clock.now = T0 + CACHE_DURATION_MS + 1
    fetcher = StubFetcher([Article(id="fresh")])
    coordinator = ArticlesCoordinator(cache, fetcher, clock)

    assert not coordinator.is_cache_valid("world")
    asyncio.run(coordinator.load_articles("world"))

    assert fetcher.calls == ["world"]
    assert [a.id for a in coordinator.current_articles] == ["fresh"]
    assert cache.last_fetch_time("world") == clock.now


def test_empty_cached_list_is_refetched(cache, clock) -> None:
    cache.put("world", [], T0)
    fetcher = StubFetcher([Article(id="1")])
    coordinator = ArticlesCoordinator(cache, fetcher, clock)

    asyncio.run(coordinator.load_articles("world"))

    assert fetcher.calls == ["world"]


def test_force_refresh_failure_falls_back_to_cache(cache, clock) -> None:
    cache.put("world", [Article(id="1")], T0)
    fetcher = StubFetcher(server_error())
    coordinator = ArticlesCoordinator(cache, fetcher, clock)

    asyncio.run(coordinator.load_articles("world", force_refresh=True))

    assert fetcher.calls == ["world"]
    assert coordinator.error.status == 500
    assert [a.id for a in coordinator.current_articles] == ["1"]
    assert coordinator.status("world") is LoadStatus.FAILED
    view = coordinator.view()
    assert view.showing_cached is True
    assert cache.last_fetch_time("world") == T0


def test_failure_without_cache_shows_only_the_error(cache, clock) -> None:
    fetcher = StubFetcher([Article(id="w1")], server_error())
    coordinator = ArticlesCoordinator(cache, fetcher, clock)

    asyncio.run(coordinator.load_articles("world"))
    asyncio.run(coordinator.load_articles("arts"))

    assert coordinator.section == "arts"
    assert coordinator.current_articles == ()
    assert coordinator.error.message == "Server is temporarily unavailable."
    view = coordinator.view()
    assert view.articles == []
    assert view.showing_cached is False
    assert cache.get("arts") == ()


def test_unexpected_exception_is_recorded_not_raised(cache, clock) -> None:
    fetcher = StubFetcher(KeyError("boom"))
    coordinator = ArticlesCoordinator(cache, fetcher, clock)

    asyncio.run(coordinator.load_articles("world"))

    assert coordinator.error.message == "Failed to fetch articles"
    assert coordinator.error.status is None
    assert coordinator.error.kind == ErrorKind.UNKNOWN.value
    assert coordinator.status("world") is LoadStatus.FAILED


def test_next_load_clears_previous_error(cache, clock) -> None:
    fetcher = StubFetcher(server_error(), [Article(id="1")])
    coordinator = ArticlesCoordinator(cache, fetcher, clock)

    asyncio.run(coordinator.load_articles("world"))
    assert coordinator.error is not None
    asyncio.run(coordinator.refresh())

    assert coordinator.error is None
    assert coordinator.status("world") is LoadStatus.READY


def test_refresh_without_section_raises(cache, clock) -> None:
    coordinator = ArticlesCoordinator(cache, StubFetcher(), clock)
    with pytest.raises(ValueError):
        asyncio.run(coordinator.refresh())


def test_unknown_section_raises_before_any_transition(cache, clock) -> None:
    fetcher = StubFetcher()
    coordinator = ArticlesCoordinator(cache, fetcher, clock)
    with pytest.raises(UnknownSectionError):
        asyncio.run(coordinator.load_articles("gossip"))
    assert fetcher.calls == []
    assert coordinator.section is None


def test_select_section_only_loads_on_change(cache, clock) -> None:
    fetcher = StubFetcher([Article(id="w")], [Article(id="a")])
    coordinator = ArticlesCoordinator(cache, fetcher, clock)

    async def run():
        await coordinator.select_section("world")
        await coordinator.select_section("world")
        await coordinator.select_section("arts")
        # Back to a section with a valid cache: no network call.
        await coordinator.select_section("world")

    asyncio.run(run())

    assert fetcher.calls == ["world", "arts"]
    assert [a.id for a in coordinator.current_articles] == ["w"]


def test_superseded_load_does_not_clobber_newer_state(cache, clock) -> None:
    release_first = asyncio.Event()

    class SlowThenFastFetcher:
        calls = 0

        async def get_top_stories(self, section: str):
            self.calls += 1
            if self.calls == 1:
                await release_first.wait()
                return [Article(id="stale")]
            return [Article(id="fresh")]

    coordinator = ArticlesCoordinator(cache, SlowThenFastFetcher(), clock)

    async def run():
        slow = coordinator.request_load("world")
        await asyncio.sleep(0)
        assert coordinator.loading is True
        await coordinator.refresh("world")
        release_first.set()
        await slow

    asyncio.run(run())

    assert [a.id for a in cache.get("world")] == ["fresh"]
    assert coordinator.status("world") is LoadStatus.READY
    assert coordinator.loading is False


def test_concurrent_reads_of_two_sections_stay_separate(clock) -> None:
    class SlowWorldFetcher:
        async def get_top_stories(self, section: str):
            if section == "world":
                await asyncio.sleep(0.01)
            return [Article(id=f"{section}-1", section=section)]

    storage = MemoryStorage()
    coordinator = ArticlesCoordinator(ArticleCache(storage), SlowWorldFetcher(), clock)
    reader = NewsReader(coordinator, PreferencesStore(storage))

    async def run():
        return await asyncio.gather(reader.articles("world"), reader.articles("arts"))

    world, arts = asyncio.run(run())

    assert world.section == "world"
    assert [a.id for a in world.articles] == ["world-1"]
    assert world.status is LoadStatus.READY
    assert arts.section == "arts"
    assert [a.id for a in arts.articles] == ["arts-1"]
    assert [a.id for a in coordinator.cache.get("world")] == ["world-1"]


def test_storage_failure_ends_load_as_failed(clock) -> None:
    class FullDisk(MemoryStorage):
        def set_item(self, key: str, value: str) -> None:
            raise OSError("disk full")

    cache = ArticleCache(FullDisk())
    coordinator = ArticlesCoordinator(cache, StubFetcher([Article(id="1")]), clock)

    asyncio.run(coordinator.load_articles("world"))

    assert coordinator.status("world") is LoadStatus.FAILED
    assert coordinator.loading is False
    assert coordinator.error.message == PERSIST_ERROR_MESSAGE
    assert cache.get("world") == ()
    assert cache.last_fetch_time("world") is None


def test_view_articles_carry_publication_times(cache, clock) -> None:
    # T0 is 2023-11-14T22:13:20Z.
    fetcher = StubFetcher(
        [
            Article(id="1", published_date="2023-11-14T20:13:20Z"),
            Article(id="2", published_date="not a date"),
        ]
    )
    coordinator = ArticlesCoordinator(cache, fetcher, clock)
    asyncio.run(coordinator.load_articles("world"))

    first, second = coordinator.view().articles
    assert first.published_ago == "2 hours ago"
    assert first.published_display == "November 14, 2023 at 8:13 PM"
    assert second.published_ago == ""
    assert second.published_display == ""


def test_request_load_validates_section_eagerly(cache, clock) -> None:
    coordinator = ArticlesCoordinator(cache, StubFetcher(), clock)

    async def run():
        coordinator.request_load("gossip")

    with pytest.raises(UnknownSectionError):
        asyncio.run(run())


def test_filtered_articles_are_memoized(cache, clock) -> None:
    fetcher = StubFetcher([Article(id="1", geo_facet=("Paris",)), Article(id="2")])
    coordinator = ArticlesCoordinator(cache, fetcher, clock)
    asyncio.run(coordinator.load_articles("world"))

    first = coordinator.filtered_articles(Filters(location="Paris"))
    second = coordinator.filtered_articles(Filters(location="Paris"))
    assert first is second
    assert [a.id for a in first] == ["1"]
    assert coordinator.filtered_articles(Filters()) is coordinator.current_articles


def test_view_exposes_option_lists_from_unfiltered_articles(cache, clock) -> None:
    fetcher = StubFetcher(
        [
            Article(id="1", geo_facet=("Paris",), des_facet=("Art",)),
            Article(id="2", geo_facet=("Berlin",), des_facet=("Elections",)),
        ]
    )
    coordinator = ArticlesCoordinator(cache, fetcher, clock)
    asyncio.run(coordinator.load_articles("world"))

    view = coordinator.view(Filters(location="Paris"))
    assert [a.id for a in view.articles] == ["1"]
    assert len(view.all_articles) == 2
    assert view.locations == ["Berlin", "Paris"]
    assert view.keywords == ["Art", "Elections"]
    assert view.is_cache_valid is True


def test_clear_articles_keeps_preferences(clock) -> None:
    storage = MemoryStorage()
    fetcher = StubFetcher([Article(id="w")], [Article(id="a")])
    coordinator = ArticlesCoordinator(ArticleCache(storage), fetcher, clock)
    preferences = PreferencesStore(storage)
    reader = NewsReader(coordinator, preferences)

    async def run():
        await reader.select_section("world")
        await reader.select_section("arts")

    asyncio.run(run())
    reader.clear_articles()

    assert coordinator.cache.articles_by_section() == {}
    assert coordinator.cache.last_fetch_times() == {}
    assert coordinator.current_articles == ()
    assert preferences.selected_section == "arts"
    assert PreferencesStore(storage).selected_section == "arts"


def test_end_to_end_fetch_then_exact_location_filter(cache, clock) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"status": "OK", "results": [{"uri": "u1", "title": "T", "geo_facet": ["Paris"]}]},
        )

    client = NYTClient(api_key="k", transport=httpx.MockTransport(handler))
    coordinator = ArticlesCoordinator(cache, client, clock)
    asyncio.run(coordinator.load_articles("world"))

    matches = apply_filters(coordinator.current_articles, Filters(location="Paris", keywords=""))
    assert [a.id for a in matches] == ["u1"]
    assert apply_filters(coordinator.current_articles, Filters(location="paris")) == []


def test_set_current_from_cache_shows_that_sections_articles(cache, clock) -> None:
    cache.put("arts", [Article(id="a")], T0)
    coordinator = ArticlesCoordinator(cache, StubFetcher(), clock)

    coordinator.set_current_from_cache("arts")
    assert [a.id for a in coordinator.current_articles] == ["a"]

    coordinator.set_current_from_cache("world")
    assert coordinator.current_articles == ()

    with pytest.raises(UnknownSectionError):
        coordinator.set_current_from_cache("gossip")
