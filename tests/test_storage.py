import json

import pytest
from booktracker.models import Genre, Series, Author
from booktracker.repo import InMemoryRepo, SupabaseRepo, RepoError
from booktracker.service import BookService
from booktracker.storage import (LocalTaxonomyCache, DEFAULT_GENRES, DEFAULT_AUTHORS, GENRES_KEY, SERIES_KEY,
                                 AUTHORS_KEY)

@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "cache" / "taxonomy.json"

@pytest.fixture
def cache(cache_path):
    return LocalTaxonomyCache(str(cache_path))

def test_missing_file_gives_defaults(cache):
    assert [g.name for g in cache.load_genres()] == [g.name for g in DEFAULT_GENRES]
    assert all(not g.is_custom for g in cache.load_genres())
    assert [a.name for a in cache.load_authors()] == [a.name for a in DEFAULT_AUTHORS]
    assert cache.load_series() == []

def test_saved_lists_read_back(cache, cache_path):
    cache.save_genres([Genre("g1", "Cozy", True)])
    cache.save_series([Series("s1", "Discworld")])
    cache.save_authors([Author("a1", "Terry Pratchett")])
    assert cache.load_genres() == [Genre("g1", "Cozy", True)]
    assert cache.load_series() == [Series("s1", "Discworld")]
    assert cache.load_authors() == [Author("a1", "Terry Pratchett")]
    stored = json.loads(cache_path.read_text(encoding="utf-8"))
    assert set(stored) == {GENRES_KEY, SERIES_KEY, AUTHORS_KEY}
    assert stored[GENRES_KEY] == [{"id": "g1", "name": "Cozy", "isCustom": True}]

@pytest.mark.parametrize("content", ["{not json", "[1, 2]", json.dumps({GENRES_KEY: [{"nope": 1}]}),
                                     json.dumps({GENRES_KEY: "Fantasy"})])
def test_corrupt_cache_gives_defaults(cache, cache_path, content):
    cache_path.parent.mkdir(parents=True)
    cache_path.write_text(content, encoding="utf-8")
    assert [g.name for g in cache.load_genres()] == [g.name for g in DEFAULT_GENRES]

def test_saving_one_list_keeps_the_others(cache):
    cache.save_series([Series("s1", "Discworld")])
    cache.save_genres([Genre("g1", "Cozy")])
    assert cache.load_series() == [Series("s1", "Discworld")]

def test_service_serves_cache_when_not_configured(cache):
    cache.save_series([Series("s1", "Discworld")])
    svc = BookService(SupabaseRepo(None, None), cache=cache)
    assert svc.list_series() == [Series("s1", "Discworld")]
    assert len(svc.list_genres()) == len(DEFAULT_GENRES)

def test_service_writes_through_and_falls_back(cache, monkeypatch):
    repo = InMemoryRepo()
    svc = BookService(repo, cache=cache)
    svc.create_genre("Cozy")
    assert [g.name for g in svc.list_genres()] == ["Cozy"]

    def offline():
        raise RepoError("offline")
    monkeypatch.setattr(repo, "list_genres", offline)
    assert [g.name for g in svc.list_genres()] == ["Cozy"]

def test_without_cache_errors_propagate(monkeypatch):
    repo = InMemoryRepo()
    svc = BookService(repo)

    def offline():
        raise RepoError("offline")
    monkeypatch.setattr(repo, "list_authors", offline)
    with pytest.raises(RepoError):
        svc.list_authors()
