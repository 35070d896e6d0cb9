# booktracker/repo.py
import copy
import json
import logging
import mimetypes
import os
import sqlite3
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

from supabase import create_client, Client

from booktracker.covers import BUCKET, LOCAL_COVER_PREFIX
from booktracker.models import Book, BookQuery, Genre, Series, Author, Ratings
from booktracker.pipeline import filter_books, sort_books

logger = logging.getLogger(__name__)

# --- Exceptions ---
class RepoError(Exception):
    """The store could not complete an operation."""
    pass

class ConfigurationError(RepoError):
    """Connection parameters for the remote store are missing."""
    pass

# --- Row mapping (column names as stored in the `books` table) ---
def book_to_row(book: Book) -> dict:
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "completionmonth": book.completion_month,
        "completionyear": book.completion_year,
        "genres": list(book.genres or []),
        "coverimage": book.cover_image,
        "ratings": book.ratings.to_dict(),
        "overallrating": book.overall_rating,
        "whichwitch": book.which_witch,
        "isstandalone": bool(book.is_standalone),
        "seriesname": book.series_name,
        "dateadded": book.date_added,
        "version": book.version,
    }

def book_from_row(r) -> Book:
    genres = r["genres"]
    if isinstance(genres, str):
        genres = json.loads(genres) if genres else []
    ratings = r["ratings"]
    if isinstance(ratings, str):
        ratings = json.loads(ratings) if ratings else {}
    return Book(
        id=str(r["id"]),
        title=r["title"],
        author=r["author"],
        completion_month=int(r["completionmonth"] or 1),
        completion_year=int(r["completionyear"] or 0),
        genres=list(genres or []),
        cover_image=r["coverimage"] or None,
        ratings=Ratings.from_dict(ratings),
        overall_rating=float(r["overallrating"] or 0),
        which_witch=r["whichwitch"],
        is_standalone=bool(r["isstandalone"]),
        series_name=r["seriesname"],
        date_added=r["dateadded"],
        version=int(r["version"] or 1),
    )

def _guess_mime(path: str) -> str:
    return mimetypes.guess_type(path)[0] or "image/jpeg"

# --- Supabase repo ---
class SupabaseRepo:
    """
    Books and taxonomy in a hosted Supabase project.

    Tables: books, genres, series, authors. Covers live in the `book-covers`
    storage bucket. Without a URL and key the repo runs degraded: reads come
    back empty and writes raise ConfigurationError.
    """

    SORT_COLUMNS = {"title": "title", "author": "author", "rating": "overallrating"}

    def __init__(self, url: Optional[str], key: Optional[str], client: Optional[Client] = None):
        self.url = url
        if client is not None:
            self.client = client
        elif url and key:
            self.client = create_client(url, key)
        else:
            self.client = None
            logger.error("Supabase not configured (url=%s, key=%s)",
                         "present" if url else "missing", "present" if key else "missing")

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _require(self) -> None:
        if not self.configured:
            raise ConfigurationError("Supabase not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY.")

    def _execute(self, builder, action: str):
        try:
            return builder.execute()
        except Exception as e:
            logger.error("Supabase %s failed: %s", action, e)
            raise RepoError(f"{action} failed: {e}") from e

    def _table(self, name: str):
        return self.client.table(name)

    def check_connection(self) -> bool:
        if not self.configured:
            return False
        try:
            self._execute(self._table("books").select("id", count="exact", head=True), "connection test")
        except RepoError:
            return False
        logger.info("Supabase connection successful")
        return True

    # -- query construction --
    @staticmethod
    def _ilike_pattern(term: str) -> str:
        """Quoted `ilike` operand that matches `term` literally anywhere in the column."""
        like = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        # inside a quoted or= value PostgREST unescapes \\ and \" once more
        quoted = like.replace("\\", "\\\\").replace('"', '\\"')
        return f'"%{quoted}%"'

    def _apply_filters(self, q, query: BookQuery):
        if query.search:
            like = self._ilike_pattern(query.search)
            q = q.or_(f"title.ilike.{like},author.ilike.{like},seriesname.ilike.{like}")
        if query.genre:
            q = q.contains("genres", [query.genre])
        if query.year is not None:
            q = q.eq("completionyear", query.year)
        if query.which_witch:
            q = q.eq("whichwitch", query.which_witch)
        return q

    def _apply_order(self, q, query: BookQuery):
        desc = query.sort_direction == "desc"
        if query.sort_field == "date":
            # newest addition first within the same month
            q = (q.order("completionyear", desc=desc)
                  .order("completionmonth", desc=desc)
                  .order("dateadded", desc=True))
        elif query.sort_field == "genre":
            # books without genres last in both directions
            q = q.order("nogenres").order("firstgenre", desc=desc)
        else:
            q = q.order(self.SORT_COLUMNS.get(query.sort_field, "title"), desc=desc)
        return q.order("id")

    # -- Books --
    def list_books(self, query: BookQuery, offset: int = 0, limit: Optional[int] = None) -> List[Book]:
        if not self.configured:
            logger.warning("Supabase not configured, returning no books")
            return []
        q = self._apply_order(self._apply_filters(self._table("books").select("*"), query), query)
        if limit is not None:
            q = q.range(offset, offset + limit - 1)
        res = self._execute(q, "list books")
        return [book_from_row(r) for r in res.data or []]

    def count_books(self, query: BookQuery) -> int:
        if not self.configured:
            return 0
        q = self._apply_filters(self._table("books").select("id", count="exact", head=True), query)
        res = self._execute(q, "count books")
        return res.count or 0

    def list_all_books(self) -> List[Book]:
        if not self.configured:
            return []
        res = self._execute(self._table("books").select("*").order("dateadded", desc=True), "fetch books")
        return [book_from_row(r) for r in res.data or []]

    def get_book(self, book_id: str) -> Optional[Book]:
        if not self.configured:
            return None
        res = self._execute(self._table("books").select("*").eq("id", book_id).limit(1), "get book")
        return book_from_row(res.data[0]) if res.data else None

    def create_book(self, book: Book) -> Book:
        self._require()
        self._execute(self._table("books").insert(book_to_row(book)), "add book")
        return book

    def update_book(self, book: Book, expected_version: int) -> bool:
        """Write the book if the stored version is still `expected_version`."""
        self._require()
        row = book_to_row(book)
        row.pop("id")
        row["version"] = expected_version + 1
        q = self._table("books").update(row).eq("id", book.id).eq("version", expected_version)
        res = self._execute(q, "update book")
        if not res.data:
            return False
        book.version = expected_version + 1
        return True

    def delete_book(self, book_id: str) -> None:
        self._require()
        self._execute(self._table("books").delete().eq("id", book_id), "delete book")

    def find_books_by_genre(self, name: str) -> List[Book]:
        if not self.configured:
            return []
        res = self._execute(self._table("books").select("*").contains("genres", [name]), "find books by genre")
        return [book_from_row(r) for r in res.data or []]

    def find_books_by_series(self, name: str) -> List[Book]:
        if not self.configured:
            return []
        res = self._execute(self._table("books").select("*").eq("seriesname", name), "find books by series")
        return [book_from_row(r) for r in res.data or []]

    def find_books_by_author(self, name: str) -> List[Book]:
        if not self.configured:
            return []
        res = self._execute(self._table("books").select("*").eq("author", name), "find books by author")
        return [book_from_row(r) for r in res.data or []]

    # -- Covers --
    def upload_cover(self, path: str, data: bytes, content_type: str) -> str:
        self._require()
        bucket = self.client.storage.from_(BUCKET)
        try:
            bucket.upload(path, data, {"content-type": content_type, "cache-control": "3600", "upsert": "false"})
        except Exception as e:
            logger.error("Error uploading cover %s: %s", path, e)
            raise RepoError(f"cover upload failed: {e}") from e
        url = bucket.get_public_url(path)
        logger.info("Uploaded cover %s", path)
        return url

    def delete_cover(self, path: str) -> None:
        self._require()
        try:
            self.client.storage.from_(BUCKET).remove([path])
        except Exception as e:
            raise RepoError(f"cover delete failed: {e}") from e

    def read_cover(self, path: str) -> Optional[Tuple[bytes, str]]:
        if not self.configured:
            return None
        try:
            data = self.client.storage.from_(BUCKET).download(path)
        except Exception as e:
            logger.info("cover %s not downloadable: %s", path, e)
            return None
        return data, _guess_mime(path)

    # -- Taxonomy (genres, series, authors share one shape) --
    def _create_named(self, table: str, row: dict) -> None:
        self._require()
        self._execute(self._table(table).insert(row), f"add {table}")

    def _get_named(self, table: str, item_id: str) -> Optional[dict]:
        if not self.configured:
            return None
        res = self._execute(self._table(table).select("*").eq("id", item_id).limit(1), f"get {table}")
        return res.data[0] if res.data else None

    def _list_named(self, table: str) -> List[dict]:
        if not self.configured:
            return []
        return self._execute(self._table(table).select("*").order("name"), f"list {table}").data or []

    def _rename_named(self, table: str, item_id: str, name: str) -> None:
        self._require()
        self._execute(self._table(table).update({"name": name}).eq("id", item_id), f"update {table}")

    def _delete_named(self, table: str, item_id: str) -> None:
        self._require()
        self._execute(self._table(table).delete().eq("id", item_id), f"delete {table}")

    def create_genre(self, g: Genre) -> Genre:
        self._create_named("genres", {"id": g.id, "name": g.name, "iscustom": g.is_custom})
        return g
    def get_genre(self, gid: str) -> Optional[Genre]:
        r = self._get_named("genres", gid)
        return Genre(str(r["id"]), r["name"], bool(r.get("iscustom", True))) if r else None
    def list_genres(self) -> List[Genre]:
        return [Genre(str(r["id"]), r["name"], bool(r.get("iscustom", True))) for r in self._list_named("genres")]
    def update_genre(self, g: Genre) -> None: self._rename_named("genres", g.id, g.name)
    def delete_genre(self, gid: str) -> None: self._delete_named("genres", gid)

    def create_series(self, s: Series) -> Series:
        self._create_named("series", {"id": s.id, "name": s.name})
        return s
    def get_series(self, sid: str) -> Optional[Series]:
        r = self._get_named("series", sid)
        return Series(str(r["id"]), r["name"]) if r else None
    def list_series(self) -> List[Series]:
        return [Series(str(r["id"]), r["name"]) for r in self._list_named("series")]
    def update_series(self, s: Series) -> None: self._rename_named("series", s.id, s.name)
    def delete_series(self, sid: str) -> None: self._delete_named("series", sid)

    def create_author(self, a: Author) -> Author:
        self._create_named("authors", {"id": a.id, "name": a.name})
        return a
    def get_author(self, aid: str) -> Optional[Author]:
        r = self._get_named("authors", aid)
        return Author(str(r["id"]), r["name"]) if r else None
    def list_authors(self) -> List[Author]:
        return [Author(str(r["id"]), r["name"]) for r in self._list_named("authors")]
    def update_author(self, a: Author) -> None: self._rename_named("authors", a.id, a.name)
    def delete_author(self, aid: str) -> None: self._delete_named("authors", aid)

# --- SQLite repo (self-hosted store with the same server-side query semantics) ---
SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    author TEXT NOT NULL,
    completionmonth INTEGER NOT NULL,
    completionyear INTEGER NOT NULL,
    genres TEXT NOT NULL DEFAULT '[]',
    coverimage TEXT,
    ratings TEXT NOT NULL DEFAULT '{}',
    overallrating REAL NOT NULL DEFAULT 0,
    whichwitch TEXT,
    isstandalone INTEGER NOT NULL DEFAULT 1,
    seriesname TEXT,
    dateadded TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE IF NOT EXISTS genres (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    iscustom INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE IF NOT EXISTS series (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS authors (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS covers (
    path TEXT PRIMARY KEY,
    content_type TEXT NOT NULL,
    data BLOB NOT NULL
);
"""

class SqliteRepo:
    SORT_SQL = {
        "title": "title COLLATE NOCASE {d}",
        "author": "author COLLATE NOCASE {d}",
        "rating": "overallrating {d}",
        "date": "completionyear {d}, completionmonth {d}, dateadded DESC",
        "genre": "(json_extract(genres, '$[0]') IS NULL), json_extract(genres, '$[0]') COLLATE NOCASE {d}",
    }

    def __init__(self, db_path: str):
        self.db_path = db_path
        parent = os.path.dirname(db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)

    @contextmanager
    def conn(self):
        con = sqlite3.connect(self.db_path)
        con.row_factory = sqlite3.Row
        try:
            yield con
            con.commit()
        except sqlite3.Error as e:
            con.rollback()
            raise RepoError(str(e)) from e
        finally:
            con.close()

    def init_schema(self) -> None:
        with self.conn() as c:
            c.executescript(SCHEMA)

    def check_connection(self) -> bool:
        try:
            with self.conn() as c:
                c.execute("SELECT COUNT(*) FROM books").fetchone()
        except RepoError:
            return False
        return True

    # -- query construction --
    @staticmethod
    def _where(query: BookQuery) -> Tuple[str, list]:
        clauses, params = [], []
        if query.search:
            escaped = query.search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            like = f"%{escaped}%"
            clauses.append("(lower(title) LIKE ? ESCAPE '\\' OR lower(author) LIKE ? ESCAPE '\\'"
                           " OR lower(COALESCE(seriesname, '')) LIKE ? ESCAPE '\\')")
            params += [like, like, like]
        if query.genre:
            clauses.append("EXISTS (SELECT 1 FROM json_each(books.genres) WHERE json_each.value = ?)")
            params.append(query.genre)
        if query.year is not None:
            clauses.append("completionyear = ?")
            params.append(query.year)
        if query.which_witch:
            clauses.append("whichwitch = ?")
            params.append(query.which_witch)
        return (" WHERE " + " AND ".join(clauses)) if clauses else "", params

    def _order(self, query: BookQuery) -> str:
        d = "DESC" if query.sort_direction == "desc" else "ASC"
        template = self.SORT_SQL.get(query.sort_field, self.SORT_SQL["title"])
        return " ORDER BY " + template.format(d=d) + ", rowid"

    @staticmethod
    def _book_params(book: Book) -> dict:
        row = book_to_row(book)
        row["genres"] = json.dumps(row["genres"], ensure_ascii=False)
        row["ratings"] = json.dumps(row["ratings"])
        row["isstandalone"] = 1 if row["isstandalone"] else 0
        return row

    # -- Books --
    def list_books(self, query: BookQuery, offset: int = 0, limit: Optional[int] = None) -> List[Book]:
        where, params = self._where(query)
        sql = "SELECT * FROM books" + where + self._order(query)
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params += [limit, offset]
        with self.conn() as c:
            rows = c.execute(sql, tuple(params)).fetchall()
            return [book_from_row(r) for r in rows]

    def count_books(self, query: BookQuery) -> int:
        where, params = self._where(query)
        with self.conn() as c:
            return c.execute("SELECT COUNT(*) FROM books" + where, tuple(params)).fetchone()[0]

    def list_all_books(self) -> List[Book]:
        with self.conn() as c:
            rows = c.execute("SELECT * FROM books ORDER BY dateadded DESC").fetchall()
            return [book_from_row(r) for r in rows]

    def get_book(self, book_id: str) -> Optional[Book]:
        with self.conn() as c:
            r = c.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
            return book_from_row(r) if r else None

    def create_book(self, book: Book) -> Book:
        with self.conn() as c:
            c.execute(
                "INSERT INTO books (id, title, author, completionmonth, completionyear, genres, coverimage, ratings,"
                " overallrating, whichwitch, isstandalone, seriesname, dateadded, version)"
                " VALUES (:id, :title, :author, :completionmonth, :completionyear, :genres, :coverimage, :ratings,"
                " :overallrating, :whichwitch, :isstandalone, :seriesname, :dateadded, :version)",
                self._book_params(book))
            return book

    def update_book(self, book: Book, expected_version: int) -> bool:
        params = self._book_params(book)
        params["expected"] = expected_version
        params["version"] = expected_version + 1
        with self.conn() as c:
            cur = c.execute(
                "UPDATE books SET title=:title, author=:author, completionmonth=:completionmonth,"
                " completionyear=:completionyear, genres=:genres, coverimage=:coverimage, ratings=:ratings,"
                " overallrating=:overallrating, whichwitch=:whichwitch, isstandalone=:isstandalone,"
                " seriesname=:seriesname, dateadded=:dateadded, version=:version"
                " WHERE id=:id AND version=:expected", params)
            if cur.rowcount == 0:
                return False
        book.version = expected_version + 1
        return True

    def delete_book(self, book_id: str) -> None:
        with self.conn() as c:
            c.execute("DELETE FROM books WHERE id = ?", (book_id,))

    def find_books_by_genre(self, name: str) -> List[Book]:
        return self.list_books(BookQuery(genre=name))

    def find_books_by_series(self, name: str) -> List[Book]:
        with self.conn() as c:
            rows = c.execute("SELECT * FROM books WHERE seriesname = ? ORDER BY rowid", (name,)).fetchall()
            return [book_from_row(r) for r in rows]

    def find_books_by_author(self, name: str) -> List[Book]:
        with self.conn() as c:
            rows = c.execute("SELECT * FROM books WHERE author = ? ORDER BY rowid", (name,)).fetchall()
            return [book_from_row(r) for r in rows]

    # -- Covers --
    def upload_cover(self, path: str, data: bytes, content_type: str) -> str:
        with self.conn() as c:
            c.execute("INSERT INTO covers (path, content_type, data) VALUES (?, ?, ?)", (path, content_type, data))
        return LOCAL_COVER_PREFIX + path

    def delete_cover(self, path: str) -> None:
        with self.conn() as c:
            c.execute("DELETE FROM covers WHERE path = ?", (path,))

    def read_cover(self, path: str) -> Optional[Tuple[bytes, str]]:
        with self.conn() as c:
            r = c.execute("SELECT data, content_type FROM covers WHERE path = ?", (path,)).fetchone()
            return (bytes(r["data"]), r["content_type"]) if r else None

    # -- Taxonomy --
    def create_genre(self, g: Genre) -> Genre:
        with self.conn() as c:
            c.execute("INSERT INTO genres (id, name, iscustom) VALUES (?, ?, ?)", (g.id, g.name, int(g.is_custom)))
            return g

    def get_genre(self, gid: str) -> Optional[Genre]:
        with self.conn() as c:
            r = c.execute("SELECT * FROM genres WHERE id = ?", (gid,)).fetchone()
            return Genre(r["id"], r["name"], bool(r["iscustom"])) if r else None

    def list_genres(self) -> List[Genre]:
        with self.conn() as c:
            rows = c.execute("SELECT * FROM genres ORDER BY name").fetchall()
            return [Genre(r["id"], r["name"], bool(r["iscustom"])) for r in rows]

    def update_genre(self, g: Genre) -> None:
        with self.conn() as c:
            c.execute("UPDATE genres SET name = ? WHERE id = ?", (g.name, g.id))

    def delete_genre(self, gid: str) -> None:
        with self.conn() as c:
            c.execute("DELETE FROM genres WHERE id = ?", (gid,))

    def create_series(self, s: Series) -> Series:
        with self.conn() as c:
            c.execute("INSERT INTO series (id, name) VALUES (?, ?)", (s.id, s.name))
            return s

    def get_series(self, sid: str) -> Optional[Series]:
        with self.conn() as c:
            r = c.execute("SELECT * FROM series WHERE id = ?", (sid,)).fetchone()
            return Series(r["id"], r["name"]) if r else None

    def list_series(self) -> List[Series]:
        with self.conn() as c:
            rows = c.execute("SELECT * FROM series ORDER BY name").fetchall()
            return [Series(r["id"], r["name"]) for r in rows]

    def update_series(self, s: Series) -> None:
        with self.conn() as c:
            c.execute("UPDATE series SET name = ? WHERE id = ?", (s.name, s.id))

    def delete_series(self, sid: str) -> None:
        with self.conn() as c:
            c.execute("DELETE FROM series WHERE id = ?", (sid,))

    def create_author(self, a: Author) -> Author:
        with self.conn() as c:
            c.execute("INSERT INTO authors (id, name) VALUES (?, ?)", (a.id, a.name))
            return a

    def get_author(self, aid: str) -> Optional[Author]:
        with self.conn() as c:
            r = c.execute("SELECT * FROM authors WHERE id = ?", (aid,)).fetchone()
            return Author(r["id"], r["name"]) if r else None

    def list_authors(self) -> List[Author]:
        with self.conn() as c:
            rows = c.execute("SELECT * FROM authors ORDER BY name").fetchall()
            return [Author(r["id"], r["name"]) for r in rows]

    def update_author(self, a: Author) -> None:
        with self.conn() as c:
            c.execute("UPDATE authors SET name = ? WHERE id = ?", (a.name, a.id))

    def delete_author(self, aid: str) -> None:
        with self.conn() as c:
            c.execute("DELETE FROM authors WHERE id = ?", (aid,))

# --- In-memory repo (simple, used for unit tests) ---
class InMemoryRepo:
    def __init__(self):
        self._books: Dict[str, Book] = {}
        self._genres: Dict[str, Genre] = {}
        self._series: Dict[str, Series] = {}
        self._authors: Dict[str, Author] = {}
        self._covers: Dict[str, Tuple[bytes, str]] = {}

    def check_connection(self) -> bool:
        return True

    # Books (copies in and out so callers can't mutate stored rows)
    def list_books(self, query: BookQuery, offset: int = 0, limit: Optional[int] = None) -> List[Book]:
        res = sort_books(filter_books(self._books.values(), query), query.sort_field, query.sort_direction)
        res = res[offset:] if limit is None else res[offset:offset + limit]
        return copy.deepcopy(res)

    def count_books(self, query: BookQuery) -> int:
        return len(filter_books(self._books.values(), query))

    def list_all_books(self) -> List[Book]:
        return copy.deepcopy(list(self._books.values()))

    def get_book(self, bid: str) -> Optional[Book]:
        b = self._books.get(bid)
        return copy.deepcopy(b) if b else None

    def create_book(self, b: Book) -> Book:
        self._books[b.id] = copy.deepcopy(b)
        return b

    def update_book(self, b: Book, expected_version: int) -> bool:
        current = self._books.get(b.id)
        if current is None or current.version != expected_version:
            return False
        b.version = expected_version + 1
        self._books[b.id] = copy.deepcopy(b)
        return True

    def delete_book(self, bid: str) -> None:
        self._books.pop(bid, None)

    def find_books_by_genre(self, name: str) -> List[Book]:
        return copy.deepcopy([b for b in self._books.values() if name in b.genres])

    def find_books_by_series(self, name: str) -> List[Book]:
        return copy.deepcopy([b for b in self._books.values() if b.series_name == name])

    def find_books_by_author(self, name: str) -> List[Book]:
        return copy.deepcopy([b for b in self._books.values() if b.author == name])

    # Covers
    def upload_cover(self, path: str, data: bytes, content_type: str) -> str:
        self._covers[path] = (data, content_type)
        return LOCAL_COVER_PREFIX + path
    def delete_cover(self, path: str) -> None: self._covers.pop(path, None)
    def read_cover(self, path: str): return self._covers.get(path)

    # Genres
    def create_genre(self, g: Genre): self._genres[g.id] = g; return g
    def get_genre(self, gid: str): return self._genres.get(gid)
    def list_genres(self): return sorted(self._genres.values(), key=lambda g: g.name)
    def update_genre(self, g: Genre): self._genres[g.id] = g
    def delete_genre(self, gid: str): self._genres.pop(gid, None)

    # Series
    def create_series(self, s: Series): self._series[s.id] = s; return s
    def get_series(self, sid: str): return self._series.get(sid)
    def list_series(self): return sorted(self._series.values(), key=lambda s: s.name)
    def update_series(self, s: Series): self._series[s.id] = s
    def delete_series(self, sid: str): self._series.pop(sid, None)

    # Authors
    def create_author(self, a: Author): self._authors[a.id] = a; return a
    def get_author(self, aid: str): return self._authors.get(aid)
    def list_authors(self): return sorted(self._authors.values(), key=lambda a: a.name)
    def update_author(self, a: Author): self._authors[a.id] = a
    def delete_author(self, aid: str): self._authors.pop(aid, None)
