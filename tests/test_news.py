from datetime import datetime, timedelta, timezone

from bson import ObjectId

from database import create_document

POST = {"title": "Kashmir sapphires", "excerpt": "Why the hue matters", "content": "Long read...",
        "tags": ["sapphire"]}


def test_create_news_defaults(client, user_auth):
    _, headers = user_auth
    resp = client.post("/api/news", json=POST, headers=headers)
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "Published"
    assert data["author"] == "Admin"
    assert data["tags"] == ["sapphire"]


def test_create_news_validation(client, user_auth):
    _, headers = user_auth
    assert client.post("/api/news", json=dict(POST, status="Secret"), headers=headers).status_code == 400
    assert client.post("/api/news", json={"title": "No body"}, headers=headers).status_code == 400
    assert client.post("/api/news", json=POST).status_code == 401


def test_list_news_newest_first_with_status_filter(client, db):
    now = datetime.now(timezone.utc)
    older = create_document(db, "newspost", dict(POST, title="Older", status="Published",
                                                 createdAt=now - timedelta(days=1)))
    newer = create_document(db, "newspost", dict(POST, title="Newer", status="Draft", createdAt=now))

    resp = client.get("/api/news")
    assert [p["id"] for p in resp.json()] == [str(newer["_id"]), str(older["_id"])]

    drafts = client.get("/api/news", params={"status": "Draft"}).json()
    assert [p["title"] for p in drafts] == ["Newer"]
    assert client.get("/api/news", params={"status": "Hidden"}).status_code == 400


def test_update_news_status(client, db, user_auth):
    _, headers = user_auth
    post = create_document(db, "newspost", dict(POST, status="Published"))

    resp = client.put(f"/api/news/{post['_id']}/status", json={"status": "Archived"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "Archived"

    assert client.put(f"/api/news/{post['_id']}/status", json={"status": "Gone"},
                      headers=headers).status_code == 400
    assert client.put(f"/api/news/{ObjectId()}/status", json={"status": "Draft"},
                      headers=headers).status_code == 404


def test_delete_news(client, db, user_auth):
    _, headers = user_auth
    post = create_document(db, "newspost", dict(POST, status="Draft"))
    resp = client.delete(f"/api/news/{post['_id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"message": "News post deleted"}
    assert client.delete(f"/api/news/{post['_id']}", headers=headers).status_code == 404
