# booktracker/storage.py
import json
import logging
import os
from typing import List

from booktracker.models import Genre, Series, Author

logger = logging.getLogger(__name__)

GENRES_KEY = "bookTracker_genres"
SERIES_KEY = "bookTracker_series"
AUTHORS_KEY = "bookTracker_authors"

DEFAULT_GENRES = [
    Genre("1", "Epic Fantasy", False),
    Genre("2", "Romantasy", False),
    Genre("3", "Dystopian Fiction", False),
    Genre("4", "Historical Fiction", False),
    Genre("5", "Science Fiction", False),
    Genre("6", "Mystery/Thriller", False),
    Genre("7", "Contemporary Fiction", False),
    Genre("8", "Young Adult", False),
    Genre("9", "Non-Fiction", False),
    Genre("10", "Biography/Memoir", False),
]

DEFAULT_AUTHORS = [
    Author("1", "Sarah J. Maas"),
    Author("2", "Brandon Sanderson"),
    Author("3", "Rebecca Yarros"),
    Author("4", "Colleen Hoover"),
    Author("5", "J.K. Rowling"),
]

class LocalTaxonomyCache:
    """
    Taxonomy lists kept in a local JSON file, one key per list.
    Used when the remote store cannot be reached; missing or corrupt data
    reads back as the default lists.
    """

    def __init__(self, path: str):
        self.path = path

    def _read_all(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("taxonomy cache %s unreadable: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _load(self, key: str):
        value = self._read_all().get(key)
        return value if isinstance(value, list) else None

    def _save(self, key: str, items: List[dict]) -> None:
        data = self._read_all()
        data[key] = items
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)

    # -- Genres --
    def load_genres(self) -> List[Genre]:
        rows = self._load(GENRES_KEY)
        if rows is None:
            return [Genre(g.id, g.name, g.is_custom) for g in DEFAULT_GENRES]
        try:
            return [Genre(r["id"], r["name"], r.get("isCustom", True)) for r in rows]
        except (KeyError, TypeError):
            logger.warning("corrupt genre list in cache, using defaults")
            return [Genre(g.id, g.name, g.is_custom) for g in DEFAULT_GENRES]

    def save_genres(self, genres: List[Genre]) -> None:
        self._save(GENRES_KEY, [{"id": g.id, "name": g.name, "isCustom": g.is_custom} for g in genres])

    # -- Series --
    def load_series(self) -> List[Series]:
        rows = self._load(SERIES_KEY)
        try:
            return [Series(r["id"], r["name"]) for r in rows or []]
        except (KeyError, TypeError):
            logger.warning("corrupt series list in cache, using defaults")
            return []

    def save_series(self, series: List[Series]) -> None:
        self._save(SERIES_KEY, [{"id": s.id, "name": s.name} for s in series])

    # -- Authors --
    def load_authors(self) -> List[Author]:
        rows = self._load(AUTHORS_KEY)
        if rows is None:
            return [Author(a.id, a.name) for a in DEFAULT_AUTHORS]
        try:
            return [Author(r["id"], r["name"]) for r in rows]
        except (KeyError, TypeError):
            logger.warning("corrupt author list in cache, using defaults")
            return [Author(a.id, a.name) for a in DEFAULT_AUTHORS]

    def save_authors(self, authors: List[Author]) -> None:
        self._save(AUTHORS_KEY, [{"id": a.id, "name": a.name} for a in authors])
