# booktracker/service.py
from datetime import date
from typing import Dict, Iterable, List, Optional, Union
import logging
import uuid

from booktracker.covers import (cover_path, decode_data_url, extension_for, is_data_url,
                                storage_path_from_url)
from booktracker.feed import BookFeed
from booktracker.models import (Book, BookQuery, CascadeResult, Genre, Series, Author, Page, Ratings,
                                WHICH_WITCH_OPTIONS, DEFAULT_PAGE_SIZE)
from booktracker.pipeline import collection_stats, distinct_years
from booktracker.ratings import RATING_MIN, RATING_MAX, calculate_overall_rating, convert_to_star_rating
from booktracker.repo import RepoError
from booktracker.storage import LocalTaxonomyCache

logger = logging.getLogger(__name__)

def new_id() -> str:
    return str(uuid.uuid4())

# Exceptions
class ValidationError(Exception):
    """Raised when input or business validation fails."""
    pass

class NotFoundError(Exception):
    """Raised when an entity is not found."""
    pass

class ConflictError(Exception):
    """Raised when a book changed since the caller last read it."""
    pass

# kind -> (repo suffix for single, repo suffix for list, model)
TAXONOMY = {
    "genre": ("genre", "genres", Genre),
    "series": ("series", "series", Series),
    "author": ("author", "authors", Author),
}

EXPORT_FIELDS = ["id", "title", "author", "completion_month", "completion_year", "genres", "series_name",
                 "which_witch", "overall_rating", "stars", "characters", "world_building", "plot",
                 "writing_style", "enjoyment", "date_added"]

class BookService:
    """
    Business logic for the book tracker.
    The service expects a repository object exposing the methods used below
    (SupabaseRepo, SqliteRepo or InMemoryRepo from booktracker.repo).
    An optional local cache keeps the taxonomy lists usable when the store is offline.
    """

    def __init__(self, repo, cache: Optional[LocalTaxonomyCache] = None, page_size: int = DEFAULT_PAGE_SIZE):
        self.repo = repo
        self.cache = cache
        self.page_size = page_size
        logger.debug("BookService initialized with repo %s", type(repo).__name__)

    # ---- Connection ----
    def connection_status(self) -> bool:
        """True when the store answers a trivial query."""
        ok = self.repo.check_connection()
        if not ok:
            logger.warning("store %s is not reachable", type(self.repo).__name__)
        return ok

    def is_configured(self) -> bool:
        return getattr(self.repo, "configured", True)

    # ---- Books: validation ----
    @staticmethod
    def _clean_genres(genres: Iterable[str]) -> List[str]:
        out: List[str] = []
        for g in genres or []:
            g = (g or "").strip()
            if g and g not in out:
                out.append(g)
        return out

    @staticmethod
    def _clean_ratings(ratings: Union[Ratings, dict, None]) -> Ratings:
        if ratings is None:
            return Ratings()
        if isinstance(ratings, dict):
            try:
                ratings = Ratings.from_dict(ratings)
            except (TypeError, ValueError):
                raise ValidationError("ratings must be whole numbers or N/A")
        for (attr, key), value in zip(Ratings.KEYS, ratings.values()):
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or not RATING_MIN <= value <= RATING_MAX:
                raise ValidationError(f"rating for {key} must be {RATING_MIN}-{RATING_MAX} or N/A")
        return ratings

    def _validate_book(self, title: str, author: str, completion_month: int, completion_year: int,
                       genres: List[str], which_witch: Optional[str]) -> None:
        if not title or not title.strip():
            raise ValidationError("title required")
        if not author or not author.strip():
            raise ValidationError("author required")
        if not genres:
            raise ValidationError("at least one genre required")
        if not which_witch:
            raise ValidationError("which witch selection required")
        if which_witch not in WHICH_WITCH_OPTIONS:
            raise ValidationError(f"which witch must be one of: {', '.join(WHICH_WITCH_OPTIONS)}")
        if not isinstance(completion_month, int) or not 1 <= completion_month <= 12:
            raise ValidationError("completion month must be 1-12")
        if not isinstance(completion_year, int) or completion_year < 1:
            raise ValidationError("completion year required")

    # ---- Books: covers ----
    def _upload_cover(self, book_id: str, data_url: str) -> str:
        data, mime = decode_data_url(data_url)
        path = cover_path(book_id, extension_for(mime))
        return self.repo.upload_cover(path, data, mime)

    def _delete_cover(self, url: Optional[str]) -> None:
        """Remove a hosted cover. Failures are logged and never stop the book operation."""
        path = storage_path_from_url(url)
        if not path:
            return
        try:
            self.repo.delete_cover(path)
            logger.info("Deleted cover %s", path)
        except RepoError as e:
            logger.error("Failed to delete cover %s: %s", path, e)

    def read_cover(self, path: str):
        found = self.repo.read_cover(path)
        if not found:
            raise NotFoundError("cover not found")
        return found

    # ---- Books ----
    def create_book(self, title: str, author: str, completion_month: int, completion_year: int,
                    genres: List[str], ratings: Union[Ratings, dict, None] = None,
                    which_witch: Optional[str] = None, is_standalone: bool = True,
                    series_name: Optional[str] = None, cover_image: Optional[str] = None) -> Book:
        """
        Create a book. The overall rating is derived from the sub-ratings.
        A data-URL cover is uploaded first; if the upload fails the book is
        saved without a cover, and if the insert fails the upload is removed.
        """
        genres = self._clean_genres(genres)
        self._validate_book(title, author, completion_month, completion_year, genres, which_witch)
        ratings = self._clean_ratings(ratings)
        book_id = new_id()

        cover_url = None
        uploaded = False
        if cover_image:
            if is_data_url(cover_image):
                try:
                    cover_url = self._upload_cover(book_id, cover_image)
                    uploaded = True
                except (RepoError, ValueError) as e:
                    logger.error("Failed to upload cover image for %s: %s", title, e)
            else:
                cover_url = cover_image

        book = Book(id=book_id, title=title.strip(), author=author.strip(),
                    completion_month=completion_month, completion_year=completion_year,
                    genres=genres, cover_image=cover_url, ratings=ratings,
                    overall_rating=calculate_overall_rating(ratings), which_witch=which_witch,
                    is_standalone=bool(is_standalone),
                    series_name=None if is_standalone else ((series_name or "").strip() or None))
        try:
            self.repo.create_book(book)
        except RepoError:
            if uploaded:
                self._delete_cover(cover_url)
            raise
        logger.info("Created book id=%s title=%s overall=%s", book.id, book.title, book.overall_rating)
        return book

    def get_book(self, book_id: str) -> Book:
        b = self.repo.get_book(book_id)
        if not b:
            logger.debug("get_book: book %s not found", book_id)
            raise NotFoundError("book not found")
        return b

    def update_book(self, book_id: str, title: str, author: str, completion_month: int, completion_year: int,
                    genres: List[str], ratings: Union[Ratings, dict, None] = None,
                    which_witch: Optional[str] = None, is_standalone: bool = True,
                    series_name: Optional[str] = None, cover_image: Optional[str] = None,
                    expected_version: Optional[int] = None) -> Book:
        """
        Update a book. cover_image: None keeps the current cover, "" removes it,
        a data URL replaces it, any other string is used as the cover URL.
        expected_version is the version the caller edited; a newer stored
        version raises ConflictError instead of overwriting it.
        """
        current = self.get_book(book_id)
        genres = self._clean_genres(genres)
        self._validate_book(title, author, completion_month, completion_year, genres, which_witch)
        ratings = self._clean_ratings(ratings)
        expected = current.version if expected_version is None else expected_version

        cover_url = current.cover_image
        uploaded = None
        if cover_image == "":
            cover_url = None
        elif cover_image and is_data_url(cover_image):
            try:
                uploaded = self._upload_cover(book_id, cover_image)
                cover_url = uploaded
            except (RepoError, ValueError) as e:
                logger.error("Failed to update cover image for %s, keeping current: %s", book_id, e)
        elif cover_image:
            cover_url = cover_image

        book = Book(id=book_id, title=title.strip(), author=author.strip(),
                    completion_month=completion_month, completion_year=completion_year,
                    genres=genres, cover_image=cover_url, ratings=ratings,
                    overall_rating=calculate_overall_rating(ratings), which_witch=which_witch,
                    is_standalone=bool(is_standalone),
                    series_name=None if is_standalone else ((series_name or "").strip() or None),
                    date_added=current.date_added, version=expected)
        try:
            ok = self.repo.update_book(book, expected)
        except RepoError:
            if uploaded:
                self._delete_cover(uploaded)
            raise
        if not ok:
            if uploaded:
                self._delete_cover(uploaded)
            logger.warning("update_book: version conflict for %s (expected %s)", book_id, expected)
            raise ConflictError("book was changed elsewhere; reload and try again")
        if current.cover_image and current.cover_image != cover_url:
            self._delete_cover(current.cover_image)
        logger.info("Updated book id=%s version=%s", book_id, book.version)
        return book

    def delete_book(self, book_id: str) -> None:
        """Delete a book, then its hosted cover. A failed row delete leaves the cover in place."""
        b = self.repo.get_book(book_id)
        self.repo.delete_book(book_id)
        if b and b.cover_image:
            self._delete_cover(b.cover_image)
        logger.info("Deleted book id=%s", book_id)

    def list_books(self, query: Optional[BookQuery] = None, page: int = 0,
                   page_size: Optional[int] = None) -> Page:
        """One page of the filtered and sorted collection, with the total from a separate count."""
        query = query or BookQuery()
        size = page_size or self.page_size
        if page < 0:
            raise ValidationError("page must be >= 0")
        items = self.repo.list_books(query, offset=page * size, limit=size)
        total = self.repo.count_books(query)
        logger.debug("list_books page=%s size=%s got=%s total=%s", page, size, len(items), total)
        return Page(items=items, total=total, page=page, page_size=size)

    def list_all_books(self) -> List[Book]:
        return self.repo.list_all_books()

    def collection_stats(self, today: Optional[date] = None) -> Dict[str, int]:
        return collection_stats(self.repo.list_all_books(), today)

    def available_years(self) -> List[int]:
        return distinct_years(self.repo.list_all_books())

    # ---- Taxonomy ----
    def _taxonomy_repo(self, kind: str, action: str):
        single, plural, _ = TAXONOMY[kind]
        name = f"{action}_{plural if action == 'list' else single}"
        return getattr(self.repo, name)

    def _cache_io(self, kind: str, action: str):
        plural = TAXONOMY[kind][1]
        return getattr(self.cache, f"{action}_{plural}")

    def _list_taxonomy(self, kind: str) -> list:
        if self.cache is not None and not self.is_configured():
            return self._cache_io(kind, "load")()
        try:
            items = self._taxonomy_repo(kind, "list")()
        except RepoError as e:
            if self.cache is None:
                raise
            logger.warning("listing %s failed, serving local cache: %s", kind, e)
            return self._cache_io(kind, "load")()
        if self.cache is not None:
            self._cache_io(kind, "save")(items)
        return items

    def _get_taxonomy(self, kind: str, item_id: str):
        item = self._taxonomy_repo(kind, "get")(item_id)
        if not item:
            raise NotFoundError(f"{kind} not found")
        return item

    def _check_name(self, kind: str, name: str, exclude_id: Optional[str] = None) -> str:
        if not name or not name.strip():
            logger.warning("%s: invalid name", kind)
            raise ValidationError(f"{kind} name required")
        name = name.strip()
        for existing in self._taxonomy_repo(kind, "list")():
            if existing.id != exclude_id and existing.name.lower() == name.lower():
                raise ValidationError(f"{kind} '{name}' already exists")
        return name

    def _create_taxonomy(self, kind: str, name: str):
        name = self._check_name(kind, name)
        model = TAXONOMY[kind][2]
        item = model(id=new_id(), name=name)
        created = self._taxonomy_repo(kind, "create")(item)
        logger.info("Created %s id=%s name=%s", kind, created.id, created.name)
        return created

    def _rename_taxonomy(self, kind: str, item_id: str, name: str) -> CascadeResult:
        item = self._get_taxonomy(kind, item_id)
        name = self._check_name(kind, name, exclude_id=item_id)
        old_name = item.name
        item.name = name
        self._taxonomy_repo(kind, "update")(item)
        logger.info("Renamed %s id=%s %r -> %r", kind, item_id, old_name, name)
        return self.cascade_rename(kind, old_name, name)

    def _delete_taxonomy(self, kind: str, item_id: str) -> None:
        # referencing books keep the old name
        self._taxonomy_repo(kind, "delete")(item_id)
        logger.info("Deleted %s id=%s", kind, item_id)

    def cascade_rename(self, kind: str, old_name: str, new_name: str) -> CascadeResult:
        """
        Rewrite every book that references old_name so it references new_name.
        Each book is written on its own, guarded by its version. Failures are
        logged and listed in the result; calling this again finishes the job.
        """
        if kind not in TAXONOMY:
            raise ValidationError(f"unknown taxonomy kind: {kind}")
        result = CascadeResult(kind=kind, old_name=old_name, new_name=new_name)
        if old_name == new_name:
            return result
        finder = getattr(self.repo, f"find_books_by_{kind}")
        for book in finder(old_name):
            if kind == "genre":
                book.genres = self._clean_genres([new_name if g == old_name else g for g in book.genres])
            elif kind == "series":
                book.series_name = new_name
            else:
                book.author = new_name
            try:
                ok = self.repo.update_book(book, book.version)
            except RepoError as e:
                logger.warning("rename %s %r -> %r failed for book %s: %s", kind, old_name, new_name, book.id, e)
                result.failed.append(book.id)
                continue
            if ok:
                result.updated.append(book.id)
            else:
                logger.warning("rename %s %r -> %r skipped book %s: changed concurrently",
                               kind, old_name, new_name, book.id)
                result.failed.append(book.id)
        logger.info("Cascade %s %r -> %r: updated=%d failed=%d",
                    kind, old_name, new_name, len(result.updated), len(result.failed))
        return result

    # Genres
    def create_genre(self, name: str) -> Genre: return self._create_taxonomy("genre", name)
    def list_genres(self) -> List[Genre]: return self._list_taxonomy("genre")
    def get_genre(self, gid: str) -> Genre: return self._get_taxonomy("genre", gid)
    def rename_genre(self, gid: str, name: str) -> CascadeResult: return self._rename_taxonomy("genre", gid, name)
    def delete_genre(self, gid: str) -> None: self._delete_taxonomy("genre", gid)

    # Series
    def create_series(self, name: str) -> Series: return self._create_taxonomy("series", name)
    def list_series(self) -> List[Series]: return self._list_taxonomy("series")
    def get_series(self, sid: str) -> Series: return self._get_taxonomy("series", sid)
    def rename_series(self, sid: str, name: str) -> CascadeResult: return self._rename_taxonomy("series", sid, name)
    def delete_series(self, sid: str) -> None: self._delete_taxonomy("series", sid)

    # Authors
    def create_author(self, name: str) -> Author: return self._create_taxonomy("author", name)
    def list_authors(self) -> List[Author]: return self._list_taxonomy("author")
    def get_author(self, aid: str) -> Author: return self._get_taxonomy("author", aid)
    def rename_author(self, aid: str, name: str) -> CascadeResult: return self._rename_taxonomy("author", aid, name)
    def delete_author(self, aid: str) -> None: self._delete_taxonomy("author", aid)

    # ---- Export ----
    def export_books(self, query: Optional[BookQuery] = None) -> List[dict]:
        """
        Export the filtered collection as a list of flat dicts ready for JSON or CSV.
        Pages through the store rather than reading everything in one request.
        """
        feed = BookFeed(self.list_books, page_size=self.page_size)
        feed.apply(query or BookQuery())
        books = feed.drain()
        if feed.error:
            raise RepoError(feed.error)
        out = []
        for b in books:
            row = {
                "id": b.id,
                "title": b.title,
                "author": b.author,
                "completion_month": b.completion_month,
                "completion_year": b.completion_year,
                "genres": list(b.genres),
                "series_name": b.series_name or "",
                "which_witch": b.which_witch or "",
                "overall_rating": b.overall_rating,
                "stars": convert_to_star_rating(b.overall_rating),
                "date_added": b.date_added,
            }
            for attr, _ in Ratings.KEYS:
                row[attr] = getattr(b.ratings, attr)
            out.append(row)
        logger.info("Exported %d books", len(out))
        return out
