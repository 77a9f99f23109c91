from fastapi.testclient import TestClient

from guestbook.database import GuestbookEntry
from guestbook.forms import GuestbookForm
from guestbook.models.user import users
from guestbook.services import DEFAULT_ENTRIES


def test_index_redirects_to_guestbook(client):
    resp = client.get("/", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/guestbook"


def test_post_and_list_entries(client):
    resp = client.post(
        "/guestbook",
        data={"name": "Arni", "text": "I'll be back"},
        follow_redirects=False,
    )
    assert resp.status_code == 302
    assert resp.headers["location"] == "/guestbook"

    resp = client.get("/guestbook")
    assert resp.status_code == 200
    assert "Arni" in resp.text


def test_blank_entry_redisplays_page(client, app):
    resp = client.post("/guestbook", data={"name": "", "text": ""})
    assert resp.status_code == 200
    assert "Name must not be empty" in resp.text
    assert app.state.guestbook.list_entries() == []


def test_startup_seeds_guestbook(app_factory):
    with TestClient(app_factory(seed_entries=True)) as client:
        resp = client.get("/guestbook")
        for name, _ in DEFAULT_ENTRIES:
            assert name in resp.text


def test_delete_requires_login(client, app):
    entry, _ = app.state.guestbook.add_entry(GuestbookForm("Arni", "bye"))
    resp = client.post(f"/guestbook/{entry.id}/delete", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login"
    assert len(app.state.guestbook.list_entries()) == 1


def test_delete_forbidden_for_users(client, app):
    entry, _ = app.state.guestbook.add_entry(GuestbookForm("Arni", "bye"))
    client.post("/register", data={"username": "eve", "password": "pw"})
    client.post("/login", data={"username": "eve", "password": "pw"})

    resp = client.post(f"/guestbook/{entry.id}/delete", follow_redirects=False)
    assert resp.status_code == 403
    assert resp.headers["content-type"].startswith("text/html")
    assert "You are not allowed to do that." in resp.text
    assert len(app.state.guestbook.list_entries()) == 1


def test_admin_deletes_entry(app_factory):
    app = app_factory(admin_username="boss", admin_password="hunter2")
    with TestClient(app) as client:
        entry, _ = app.state.guestbook.add_entry(GuestbookForm("Arni", "bye"))
        client.post("/login", data={"username": "boss", "password": "hunter2"})

        resp = client.post(f"/guestbook/{entry.id}/delete", follow_redirects=False)
        assert resp.status_code == 302
        assert app.state.guestbook.list_entries() == []

        resp = client.post(f"/guestbook/{entry.id}/delete", follow_redirects=False)
        assert resp.status_code == 404
        assert "Entry not found." in resp.text


def test_database_failure_renders_generic_page(client, app):
    GuestbookEntry.__table__.drop(app.state.engine)

    resp = client.get("/guestbook")
    assert resp.status_code == 500
    assert "Something went wrong" in resp.text


def test_registration_database_failure_renders_generic_page(client, app):
    users.drop(app.state.engine)

    resp = client.post(
        "/register",
        data={"username": "alice", "password": "Passw0rd!"},
        follow_redirects=False,
    )
    assert resp.status_code == 500
    assert "Something went wrong" in resp.text


def test_metrics_endpoint(client):
    client.get("/register")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "guestbook_requests_total" in resp.text