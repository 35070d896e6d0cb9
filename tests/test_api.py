import pytest
from run import create_app
from booktracker.repo import InMemoryRepo, SupabaseRepo, RepoError
from booktracker.service import BookService

@pytest.fixture
def api_client():
    """Flask test client configured for API endpoint tests using InMemoryRepo."""
    app = create_app()
    app.testing = True
    repo = InMemoryRepo()
    svc = BookService(repo, page_size=2)
    app.config["SERVICE"] = svc
    with app.test_client() as client:
        yield client, svc

def add_books(svc, n):
    return [svc.create_book(f"Book {i}", "Author", 1 + i, 2000 + i, ["Fantasy"], ratings={"plot": 1 + i},
                            which_witch="Lou Lou") for i in range(n)]

def test_api_books_pages_until_done(api_client):
    client, svc = api_client
    add_books(svc, 5)
    seen, page = [], 0
    while True:
        data = client.get(f"/api/books?sort=date&dir=asc&page={page}").get_json()
        assert data["total"] == 5 and data["page"] == page
        seen += [b["title"] for b in data["items"]]
        if not data["has_more"]:
            break
        page += 1
    assert seen == [f"Book {i}" for i in range(5)]
    assert page == 2

def test_api_books_item_shape(api_client):
    client, svc = api_client
    add_books(svc, 1)
    item = client.get("/api/books").get_json()["items"][0]
    assert item["completed"] == "Jan 2000"
    assert item["ratings"] == {"characters": None, "worldBuilding": None, "plot": 1, "writingStyle": None,
                               "enjoyment": None}
    assert item["overallRating"] == 1.0 and item["stars"] == 0.5
    assert item["whichWitch"] == "Lou Lou" and item["version"] == 1

def test_api_books_applies_filters(api_client):
    client, svc = api_client
    add_books(svc, 3)
    data = client.get("/api/books?q=book+1").get_json()
    assert [b["title"] for b in data["items"]] == ["Book 1"]
    assert client.get("/api/books?year=2002").get_json()["total"] == 1
    assert client.get("/api/books?witch=Chlo").get_json()["total"] == 0

def test_api_books_ignores_bad_paging_and_sort(api_client):
    client, svc = api_client
    add_books(svc, 3)
    data = client.get("/api/books?page=-3&sort=pages&dir=sideways").get_json()
    assert data["page"] == 0
    # falls back to newest completion first
    assert data["items"][0]["title"] == "Book 2"

def test_api_books_reports_store_failure(api_client, monkeypatch):
    client, svc = api_client
    def boom(*args, **kwargs):
        raise RepoError("timeout")
    monkeypatch.setattr(svc.repo, "list_books", boom)
    resp = client.get("/api/books?page=1")
    assert resp.status_code == 503
    assert "timeout" in resp.get_json()["error"]

def test_api_status_connected(api_client):
    client, _ = api_client
    assert client.get("/api/status").get_json() == {"configured": True, "connected": True}

def test_api_status_not_configured(api_client):
    client, _ = api_client
    client.application.config["SERVICE"] = BookService(SupabaseRepo(None, None))
    assert client.get("/api/status").get_json() == {"configured": False, "connected": False}

def test_index_survives_store_failure(api_client, monkeypatch):
    client, svc = api_client
    def boom(*args, **kwargs):
        raise RepoError("timeout")
    monkeypatch.setattr(svc.repo, "list_books", boom)
    resp = client.get("/")
    assert resp.status_code == 200
    assert b"Could not load books from the store." in resp.data

def test_export_failure_is_503(api_client, monkeypatch):
    client, svc = api_client
    def boom(*args, **kwargs):
        raise RepoError("timeout")
    monkeypatch.setattr(svc.repo, "count_books", boom)
    resp = client.get("/books/export?format=json")
    assert resp.status_code == 503
    assert b"Storage error" in resp.data
