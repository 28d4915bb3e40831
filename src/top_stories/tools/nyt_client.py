import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from ..config import settings
from ..errors import ErrorKind, TopStoriesAPIError, UnknownSectionError
from ..logging_config import get_logger
from ..models.news import Article, SECTIONS


logger = get_logger("tools.nyt_client")

GENERIC_MESSAGE = "Unable to load articles. Please try again."
NOT_FOUND_MESSAGE = "No articles available for this section."
RATE_LIMITED_MESSAGE = "Too many requests. Please wait a moment and try again."
SERVER_UNAVAILABLE_MESSAGE = "Server is temporarily unavailable. Please try again later."
TIMEOUT_MESSAGE = "Unable to connect. Please check your internet connection."
NETWORK_MESSAGE = "Network connection issue. Please check your internet and try again."


def message_for_status(status: int) -> str:
    if status == 404:
        return NOT_FOUND_MESSAGE
    if status == 429:
        return RATE_LIMITED_MESSAGE
    if status >= 500:
        return SERVER_UNAVAILABLE_MESSAGE
    return GENERIC_MESSAGE


def _text(value: Any, default: str = "") -> str:
    if isinstance(value, str) and value:
        return value
    return default


def _facet(value: Any) -> Tuple[str, ...]:
    # The API sends "" instead of [] for empty facets.
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(item for item in value if isinstance(item, str))


def _first_media(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    media = item.get("multimedia")
    if isinstance(media, list) and media and isinstance(media[0], dict):
        return media[0]
    return None


def normalize_article(item: Any, index: int) -> Article:
    """Map one raw Top Stories result onto an Article.

    Every field has a single default: strings fall back to "", the byline
    to "Unknown Author", the id to ``article-<index>`` and facets to empty
    tuples. Never raises on malformed input.
    """

    if not isinstance(item, dict):
        item = {}
    media = _first_media(item)
    published = _text(item.get("published_date"))

    return Article(
        id=_text(item.get("uri"), f"article-{index}"),
        title=_text(item.get("title")),
        abstract=_text(item.get("abstract")),
        byline=_text(item.get("byline"), "Unknown Author"),
        published_date=published,
        updated_date=_text(item.get("updated_date"), published),
        section=_text(item.get("section")),
        subsection=_text(item.get("subsection")),
        url=_text(item.get("url")),
        image_url=_text(media.get("url")) or None if media else None,
        caption=_text(media.get("caption")) if media else "",
        geo_facet=_facet(item.get("geo_facet")),
        des_facet=_facet(item.get("des_facet")),
        org_facet=_facet(item.get("org_facet")),
        per_facet=_facet(item.get("per_facet")),
    )


def normalize_articles(response: Any) -> List[Article]:
    if not isinstance(response, dict):
        return []
    results = response.get("results")
    if not isinstance(results, list):
        return []
    return [normalize_article(item, idx) for idx, item in enumerate(results)]


Sleep = Callable[[float], Awaitable[None]]


class NYTClient:
    """Timed, retried client for the NYT Top Stories API."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.nytimes.com/svc/topstories/v2",
        timeout_ms: int = 10000,
        max_attempts: int = 3,
        initial_backoff_ms: int = 1000,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if not api_key:
            raise RuntimeError("NYT_API_KEY is not configured in the environment.")
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.max_attempts = max(1, max_attempts)
        self.initial_backoff_ms = initial_backoff_ms
        self._transport = transport
        self._sleep = sleep

    @classmethod
    def from_settings(cls, **kwargs: Any) -> "NYTClient":
        return cls(
            api_key=settings.nyt_api_key,
            base_url=settings.nyt_base_url,
            timeout_ms=settings.request_timeout_ms,
            max_attempts=settings.max_attempts,
            initial_backoff_ms=settings.initial_backoff_ms,
            **kwargs,
        )

    def section_url(self, section: str) -> str:
        return f"{self.base_url}/{section}.json"

    async def _request(self, section: str) -> Dict[str, Any]:
        timeout = self.timeout_ms / 1000
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                # wait_for bounds the whole call, not just each socket operation
                response = await asyncio.wait_for(
                    client.get(self.section_url(section), params={"api-key": self._api_key}),
                    timeout=timeout,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise TopStoriesAPIError(TIMEOUT_MESSAGE, 408, ErrorKind.TIMEOUT) from exc
        except httpx.HTTPError as exc:
            raise TopStoriesAPIError(NETWORK_MESSAGE, None, ErrorKind.NETWORK_FAILURE) from exc
        except Exception as exc:
            raise TopStoriesAPIError(NETWORK_MESSAGE, None, ErrorKind.UNKNOWN) from exc

        if response.is_error:
            try:
                error_data = response.json()
            except ValueError:
                error_data = None
            status = response.status_code
            kind = ErrorKind.CLIENT_ERROR if status < 500 else ErrorKind.SERVER_ERROR
            raise TopStoriesAPIError(message_for_status(status), status, kind, error_data)

        try:
            data = response.json()
        except ValueError as exc:
            raise TopStoriesAPIError(GENERIC_MESSAGE, 500, ErrorKind.SERVER_REJECTED) from exc

        if not isinstance(data, dict) or data.get("status") != "OK":
            raise TopStoriesAPIError(GENERIC_MESSAGE, 500, ErrorKind.SERVER_REJECTED, data)
        return data

    async def fetch_section(self, section: str) -> Dict[str, Any]:
        """Fetch the raw Top Stories payload for a section.

        Retries with exponential backoff (initial delay doubling per
        attempt) unless the failure carries a 4xx status. The last error
        is re-raised once attempts run out.
        """

        if section not in SECTIONS:
            raise UnknownSectionError(section)

        last_exc: TopStoriesAPIError | None = None
        for attempt in range(self.max_attempts):
            if last_exc is not None:
                delay = self.initial_backoff_ms * 2 ** (attempt - 1) / 1000
                logger.info(
                    "fetch_section_retry",
                    section=section,
                    attempt=attempt + 1,
                    status=last_exc.status,
                    kind=last_exc.kind.value,
                    delay_s=delay,
                )
                await self._sleep(delay)
            try:
                data = await self._request(section)
            except TopStoriesAPIError as exc:
                last_exc = exc
                if not exc.retryable:
                    break
                continue

            results = data.get("results")
            logger.info(
                "fetch_section_success",
                section=section,
                attempt=attempt + 1,
                results=len(results) if isinstance(results, list) else 0,
            )
            return data

        assert last_exc is not None
        logger.warning(
            "fetch_section_failed",
            section=section,
            status=last_exc.status,
            kind=last_exc.kind.value,
        )
        raise last_exc

    async def get_top_stories(self, section: str) -> List[Article]:
        response = await self.fetch_section(section)
        return normalize_articles(response)
