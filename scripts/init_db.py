# scripts/init_db.py
# Create the SQLite schema and seed the default genres and authors.
import os

from booktracker.repo import SqliteRepo
from booktracker.storage import DEFAULT_GENRES, DEFAULT_AUTHORS

DB = os.path.join("data", "books.db")

repo = SqliteRepo(DB)
repo.init_schema()
known_genres = {g.name for g in repo.list_genres()}
for g in DEFAULT_GENRES:
    if g.name not in known_genres:
        repo.create_genre(g)
known_authors = {a.name for a in repo.list_authors()}
for a in DEFAULT_AUTHORS:
    if a.name not in known_authors:
        repo.create_author(a)
print("initialized db at", DB)
