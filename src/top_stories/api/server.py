from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from ..core.reader import NewsReader
from ..core.filters import get_unique_keywords, get_unique_locations
from ..errors import UnknownSectionError
from ..logging_config import bind_request_context, get_logger
from ..models.news import DEFAULT_SECTIONS, SECTIONS, section_label
from ..models.state import ArticlesView, Filters, Preferences


app = FastAPI(
    title="Top Stories Reader API",
    description="Cached, filterable NYT Top Stories by section",
    version="1.0.0",
)
logger = get_logger("api.server")

_reader: NewsReader | None = None


def get_reader() -> NewsReader:
    """Return the shared NewsReader, building it on first use."""

    global _reader
    if _reader is None:
        try:
            _reader = NewsReader.from_settings()
        except RuntimeError as exc:
            logger.error("news_reader_unavailable", error=str(exc))
            raise HTTPException(status_code=503, detail=str(exc))
    return _reader


class SectionRequest(BaseModel):
    section: str


class FiltersResponse(BaseModel):
    section: str
    locations: list[str]
    keywords: list[str]


def _unknown_section(exc: UnknownSectionError) -> HTTPException:
    logger.warning("unknown_section", section=exc.section)
    return HTTPException(status_code=404, detail=str(exc))


# ============================================================================
# Health and Sections
# ============================================================================


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/sections")
def sections() -> dict:
    """All sections, the default shortlist, and those readable offline."""

    return {
        "sections": [{"name": name, "label": section_label(name)} for name in SECTIONS],
        "default_sections": list(DEFAULT_SECTIONS),
        "cached_sections": get_reader().coordinator.cache.sections(),
    }


# ============================================================================
# Articles
# ============================================================================


@app.get("/articles", response_model=ArticlesView)
async def get_articles(
    section: Optional[str] = None,
    location: Optional[str] = None,
    keywords: Optional[str] = None,
    refresh: bool = False,
) -> ArticlesView:
    """Articles for a section under the given (or stored) filters.

    Cached articles are served while fresh; otherwise they are fetched.
    A failed fetch is reported in ``error`` rather than as an HTTP error,
    since cached articles may still accompany it.
    """

    reader = get_reader()
    bind_request_context(section=section or reader.preferences.selected_section, refresh=refresh)
    stored = reader.preferences.filters
    filters = Filters(
        location=location if location is not None else stored.location,
        keywords=keywords if keywords is not None else stored.keywords,
    )
    logger.info(
        "articles_request",
        section=section,
        location=filters.location,
        keywords=filters.keywords,
        refresh=refresh,
    )
    try:
        view = await reader.articles(section, filters, force_refresh=refresh)
    except UnknownSectionError as exc:
        raise _unknown_section(exc)

    logger.info(
        "articles_response",
        section=view.section,
        status=view.status.value,
        articles_count=len(view.articles),
        showing_cached=view.showing_cached,
    )
    return view


@app.post("/articles/{section}/refresh", response_model=ArticlesView)
async def refresh_articles(section: str) -> ArticlesView:
    reader = get_reader()
    bind_request_context(section=section, refresh=True)
    try:
        return await reader.articles(section, force_refresh=True)
    except UnknownSectionError as exc:
        raise _unknown_section(exc)


@app.get("/articles/{section}/filters", response_model=FiltersResponse)
def get_filter_options(section: str) -> FiltersResponse:
    """Location and keyword options from the section's cached articles."""

    if section not in SECTIONS:
        raise _unknown_section(UnknownSectionError(section))
    articles = get_reader().coordinator.cache.get(section)
    return FiltersResponse(
        section=section,
        locations=get_unique_locations(articles),
        keywords=get_unique_keywords(articles),
    )


@app.delete("/articles")
def clear_articles() -> dict:
    reader = get_reader()
    reader.clear_articles()
    return {"status": "cleared"}


# ============================================================================
# Preferences
# ============================================================================


@app.get("/preferences", response_model=Preferences)
def get_preferences() -> Preferences:
    return get_reader().preferences.preferences


@app.put("/preferences/section", response_model=ArticlesView)
async def select_section(req: SectionRequest) -> ArticlesView:
    try:
        return await get_reader().select_section(req.section)
    except UnknownSectionError as exc:
        raise _unknown_section(exc)


@app.put("/preferences/filters", response_model=Preferences)
def set_filters(req: Filters) -> Preferences:
    preferences = get_reader().preferences
    preferences.set_location_filter(req.location)
    return preferences.set_keywords_filter(req.keywords)


@app.delete("/preferences/filters", response_model=Preferences)
def clear_filters() -> Preferences:
    return get_reader().preferences.clear_filters()


@app.post("/preferences/reset", response_model=Preferences)
def reset_preferences() -> Preferences:
    return get_reader().preferences.reset_preferences()
