from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict


SECTIONS: Tuple[str, ...] = (
    "home",
    "arts",
    "automobiles",
    "books",
    "business",
    "fashion",
    "food",
    "health",
    "insider",
    "magazine",
    "movies",
    "nyregion",
    "obituaries",
    "opinion",
    "politics",
    "realestate",
    "science",
    "sports",
    "sundayreview",
    "technology",
    "theater",
    "t-magazine",
    "travel",
    "upshot",
    "us",
    "world",
)

SECTION_LABELS = {
    "home": "Home",
    "world": "World",
    "arts": "Arts",
    "science": "Science",
    "sports": "Sports",
    "opinion": "Opinion",
    "travel": "Travel",
    "technology": "Technology",
    "business": "Business",
    "politics": "Politics",
    "health": "Health",
    "food": "Food",
    "fashion": "Fashion",
    "movies": "Movies",
    "theater": "Theater",
    "books": "Books",
}

DEFAULT_SECTIONS: Tuple[str, ...] = ("home", "world", "arts", "science", "sports", "opinion")


def section_label(section: str) -> str:
    return SECTION_LABELS.get(section) or section.capitalize()


class Article(BaseModel):
    """A normalized Top Stories article. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    abstract: str = ""
    byline: str = "Unknown Author"
    published_date: str = ""
    updated_date: str = ""
    section: str = ""
    subsection: str = ""
    url: str = ""
    image_url: Optional[str] = None
    caption: str = ""
    geo_facet: Tuple[str, ...] = ()
    des_facet: Tuple[str, ...] = ()
    org_facet: Tuple[str, ...] = ()
    per_facet: Tuple[str, ...] = ()
