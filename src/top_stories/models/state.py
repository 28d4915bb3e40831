from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .news import Article


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ErrorInfo(BaseModel):
    message: str
    status: Optional[int] = None
    kind: str = "unknown"


class Filters(BaseModel):
    location: str = ""
    keywords: str = ""


class Preferences(BaseModel):
    selected_section: str = "home"
    filters: Filters = Field(default_factory=Filters)


class ServedArticle(Article):
    """An article as handed to readers, with display-ready dates."""

    published_ago: str = ""
    published_display: str = ""


class ArticlesView(BaseModel):
    """What a screen needs to render one section under the active filters."""

    section: Optional[str] = None
    articles: List[ServedArticle] = []
    all_articles: List[ServedArticle] = []
    loading: bool = False
    error: Optional[ErrorInfo] = None
    status: LoadStatus = LoadStatus.IDLE
    is_cache_valid: bool = False

    # Error recorded while previously cached articles are still shown
    showing_cached: bool = False

    # Filter option lists, derived from the unfiltered set
    locations: List[str] = []
    keywords: List[str] = []
