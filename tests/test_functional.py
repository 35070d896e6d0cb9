import io
import json

import pytest
from run import create_app
from booktracker.covers import storage_path_from_url
from booktracker.models import BookQuery
from booktracker.repo import InMemoryRepo, SupabaseRepo
from booktracker.service import BookService

PNG = b"\x89PNG\r\n\x1a\nfunctional-cover"

def form(**kw):
    data = {"title": "Dune", "author": "Frank Herbert", "completion_month": "8", "completion_year": "1965",
            "genres": ["Sci-Fi"], "which_witch": "Chlo", "is_standalone": "1",
            "characters": "8", "worldBuilding": "na", "plot": "6", "writingStyle": "7", "enjoyment": "na"}
    data.update(kw)
    return data

@pytest.fixture
def client():
    # create app and override its SERVICE with an in-memory store
    app = create_app()
    svc = BookService(InMemoryRepo(), page_size=2)
    app.config["SERVICE"] = svc
    app.testing = True
    with app.test_client() as c:
        yield c

@pytest.fixture
def svc(client):
    return client.application.config["SERVICE"]

# ------------------ Functional scenarios ------------------

def test_add_book_and_see_it_listed(client, svc):
    resp = client.post("/books/new", data=form(), follow_redirects=True)
    assert resp.status_code == 200
    assert b"Book added: Dune" in resp.data
    assert b"3.5/5" in resp.data
    assert b"Aug 1965" in resp.data
    book = svc.list_all_books()[0]
    assert book.overall_rating == 7.0 and book.ratings.world_building is None

def test_add_book_validation_is_flashed(client, svc):
    resp = client.post("/books/new", data=form(which_witch=""), follow_redirects=True)
    assert b"which witch selection required" in resp.data
    assert svc.list_all_books() == []

def test_new_genres_and_series_from_form(client, svc):
    client.post("/books/new", data=form(genres=["Sci-Fi"], new_genres="Space Opera, Classic",
                                        is_standalone="0", series_name="Dune Chronicles"))
    book = svc.list_all_books()[0]
    assert book.genres == ["Sci-Fi", "Space Opera", "Classic"]
    assert not book.is_standalone and book.series_name == "Dune Chronicles"

def test_empty_collection_message(client):
    resp = client.get("/")
    assert b"No books yet" in resp.data
    assert b"Total Books: 0" in resp.data

def test_filters_and_no_match_message(client, svc):
    svc.create_book("Dune", "Frank Herbert", 8, 1965, ["Sci-Fi"], which_witch="Chlo")
    svc.create_book("Dune Messiah", "Frank Herbert", 3, 1969, ["Sci-Fi"], which_witch="Affo")
    svc.create_book("The Dune Cookbook", "A. Chef", 5, 1965, ["Cooking"], which_witch="Chlo")
    resp = client.get("/?q=dune&genre=Sci-Fi&year=1965")
    assert b"Showing 1 of 1 books" in resp.data
    assert b"Dune Messiah" not in resp.data and b"Cookbook" not in resp.data
    resp2 = client.get("/?q=tolkien")
    assert b"No books match your filters" in resp2.data

def test_sort_by_title_and_toggle_link(client, svc):
    svc.create_book("Beta", "B", 1, 2020, ["G"], which_witch="Chlo")
    svc.create_book("Alpha", "A", 2, 2019, ["G"], which_witch="Chlo")
    resp = client.get("/?sort=title&dir=asc")
    assert resp.data.index(b"Alpha") < resp.data.index(b"Beta")
    # clicking the active header again flips the direction
    assert b"sort=title&amp;dir=desc" in resp.data

def test_first_page_and_load_more_button(client, svc):
    for i in range(3):
        svc.create_book(f"Book {i}", "A", 1, 2000 + i, ["G"], which_witch="Chlo")
    resp = client.get("/")
    assert b"Showing 2 of 3 books" in resp.data
    assert b'id="load-more"' in resp.data
    # rows appended by the button get the same edit link as rendered rows
    assert b'"/books/__book_id__/edit"' in resp.data
    assert resp.data.count(b'>Edit</a>') == 2

def test_upload_cover_and_serve_it(client, svc):
    data = form(cover=(io.BytesIO(PNG), "dune.png", "image/png"))
    client.post("/books/new", data=data, content_type="multipart/form-data", follow_redirects=True)
    book = svc.list_all_books()[0]
    assert storage_path_from_url(book.cover_image).endswith(".png")
    resp = client.get(book.cover_image)
    assert resp.status_code == 200
    assert resp.data == PNG and resp.mimetype == "image/png"

def test_missing_cover_is_404(client):
    resp = client.get("/covers/book-covers/none.png")
    assert resp.status_code == 404
    assert b"cover not found" in resp.data

def test_edit_book(client, svc):
    b = svc.create_book("Dune", "Frank Herbert", 8, 1965, ["Sci-Fi"], which_witch="Chlo")
    page = client.get(f"/books/{b.id}/edit")
    assert b'name="version" value="1"' in page.data
    resp = client.post(f"/books/{b.id}/edit", data=form(title="Dune (Deluxe)", version="1",
                                                         plot="10"), follow_redirects=True)
    assert b"Book updated" in resp.data
    got = svc.get_book(b.id)
    assert got.title == "Dune (Deluxe)" and got.version == 2 and got.overall_rating == 8.3

def test_stale_edit_shows_conflict(client, svc):
    b = svc.create_book("Dune", "Frank Herbert", 8, 1965, ["Sci-Fi"], which_witch="Chlo")
    svc.update_book(b.id, "Dune (edited elsewhere)", "Frank Herbert", 8, 1965, ["Sci-Fi"], which_witch="Chlo")
    resp = client.post(f"/books/{b.id}/edit", data=form(title="Mine", version="1"))
    assert resp.status_code == 200
    assert b"book was changed elsewhere" in resp.data
    assert b"Dune (edited elsewhere)" in resp.data
    assert svc.get_book(b.id).title == "Dune (edited elsewhere)"

def test_edit_unknown_book_redirects(client):
    resp = client.get("/books/nope/edit", follow_redirects=True)
    assert b"Book not found" in resp.data

def test_delete_book(client, svc):
    b = svc.create_book("Dune", "Frank Herbert", 8, 1965, ["Sci-Fi"], which_witch="Chlo")
    resp = client.post(f"/books/{b.id}/delete", follow_redirects=True)
    assert b"Book deleted" in resp.data
    assert svc.list_all_books() == []

def test_genre_rename_through_ui_updates_books(client, svc):
    g = svc.create_genre("Fantasy")
    b = svc.create_book("Mistborn", "Brandon Sanderson", 1, 2020, ["Adventure", "Fantasy"], which_witch="Affo")
    resp = client.post(f"/genres/{g.id}/edit", data={"name": "Epic Fantasy"}, follow_redirects=True)
    assert b"Genre renamed; 1 book(s) updated" in resp.data
    assert b"Epic Fantasy" in resp.data
    assert svc.get_book(b.id).genres == ["Adventure", "Epic Fantasy"]

@pytest.mark.parametrize("section, label", [("genres", b"Genre"), ("series", b"Series"), ("authors", b"Author")])
def test_taxonomy_create_and_delete(client, svc, section, label):
    resp = client.post(f"/{section}/new", data={"name": "Cosmere"}, follow_redirects=True)
    assert label + b" created" in resp.data and b"Cosmere" in resp.data
    item = getattr(svc, f"list_{section}")()[0]
    resp2 = client.post(f"/{section}/{item.id}/delete", follow_redirects=True)
    assert label + b" deleted" in resp2.data
    assert getattr(svc, f"list_{section}")() == []

def test_taxonomy_duplicate_is_flashed(client, svc):
    svc.create_author("Brandon Sanderson")
    resp = client.post("/authors/new", data={"name": "brandon sanderson"})
    assert b"already exists" in resp.data

def test_unknown_taxonomy_section_is_404(client):
    assert client.get("/publishers").status_code == 404

def test_export_csv_and_json(client, svc):
    svc.create_book("Dune", "Frank Herbert", 8, 1965, ["Sci-Fi", "Classic"], ratings={"plot": 9},
                    which_witch="Chlo")
    svc.create_book("Emma", "Jane Austen", 2, 2021, ["Romance"], which_witch="Affo")
    resp = client.get("/books/export?format=csv&genre=Sci-Fi")
    assert resp.status_code == 200 and resp.mimetype == "text/csv"
    text = resp.data.decode("utf-8")
    assert text.splitlines()[0].startswith("id,title,author")
    assert "Sci-Fi; Classic" in text and "Emma" not in text
    resp2 = client.get("/books/export?format=json")
    assert resp2.mimetype == "application/json"
    rows = json.loads(resp2.data.decode("utf-8"))
    assert {r["title"] for r in rows} == {"Dune", "Emma"}
    assert [r["stars"] for r in rows if r["title"] == "Dune"] == [4.5]

def test_unconfigured_store_still_renders(client):
    client.application.config["SERVICE"] = BookService(SupabaseRepo(None, None))
    resp = client.get("/")
    assert resp.status_code == 200
    assert b"No books yet" in resp.data and b"Store not configured" in resp.data
    resp2 = client.post("/books/new", data=form(), follow_redirects=True)
    assert b"Failed to save book" in resp2.data
    assert client.application.config["SERVICE"].list_books(BookQuery()).total == 0
