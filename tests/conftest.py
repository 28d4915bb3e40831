import pytest

from top_stories.models.news import Article


def make_article(id: str, geo=(), des=(), **kwargs) -> Article:
    return Article(id=id, title=f"Title {id}", geo_facet=tuple(geo), des_facet=tuple(des), **kwargs)


@pytest.fixture
def sample_articles():
    return [
        make_article("1", geo=["New York City", "Paris"], des=["Elections", "Politics and Government"]),
        make_article("2", geo=["Paris"], des=["Art"]),
        make_article("3", geo=["London"], des=["Elections"]),
        make_article("4"),
    ]
