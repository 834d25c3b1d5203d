from jsonmirror.declarations import Column, Id, record
from jsonmirror.locator import FieldLocator

from sample_records import User


class Base:
    id = Id(int)
    title = Column(str, map_from="headline")


@record
class Article(Base):
    body = Column(str, map_from="content")


def test_locates_by_declared_name():
    assert FieldLocator().locate(User, "name") == "name"


def test_locates_by_map_from_override():
    locator = FieldLocator()

    assert locator.locate(User, "nick") == "nickname"
    assert locator.locate(User, "userId") == "id"


def test_walks_the_class_hierarchy():
    locator = FieldLocator()

    assert locator.locate(Article, "content") == "body"
    assert locator.locate(Article, "headline") == "title"
    assert locator.locate(Article, "id") == "id"


def test_missing_keys_return_none_and_are_cached():
    locator = FieldLocator()

    assert locator.locate(User, "unknown") is None
    assert (User, "unknown") in locator._cache

    locator.clear()
    assert locator._cache == {}
