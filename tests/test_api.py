from __future__ import annotations

import json
from pathlib import Path

from starlette.testclient import TestClient

from affiliate_posts.api import create_app
from affiliate_posts.config import AppConfig
from affiliate_posts.service import BlogService
from affiliate_posts.store import RecordStore

from conftest import FakeProvider


def _client(root: Path, service: BlogService) -> TestClient:
    app = create_app(root_dir=str(root), service=service, serve_static=False, allow_origins=["*"])
    return TestClient(app)


def test_product_endpoints(project_root: Path, service: BlogService) -> None:
    client = _client(project_root, service)

    created = client.post("/api/products", json={"name": "Widget", "category": "Electronics", "price": "5"})
    assert created.status_code == 201
    product = created.json()
    assert product["price"] == "$5"

    client.post("/api/products", json={"name": "Novel", "category": "Books"})

    categories = client.get("/api/products/categories")
    assert categories.status_code == 200
    assert categories.json() == ["Books", "Electronics"]

    filtered = client.get("/api/products", params={"category": "Electronics"})
    assert [p["name"] for p in filtered.json()] == ["Widget"]

    updated = client.put(f"/api/products/{product['id']}", json={"brand": "Acme"})
    assert updated.status_code == 200
    assert updated.json()["brand"] == "Acme"
    assert client.get(f"/api/products/{product['id']}").json()["brand"] == "Acme"

    assert client.delete(f"/api/products/{product['id']}").status_code == 200
    second = client.delete(f"/api/products/{product['id']}")
    assert second.status_code == 404
    assert second.json() == {"message": "Product not found"}


def test_generate_post_without_products_is_rejected(
    project_root: Path, service: BlogService, provider: FakeProvider
) -> None:
    client = _client(project_root, service)

    resp = client.post("/api/gemini/generate-post", json={"products": [], "instructions": "x"})

    assert resp.status_code == 400
    assert "message" in resp.json()
    assert provider.calls == []


def test_generate_post_returns_reply(project_root: Path, service: BlogService, provider: FakeProvider) -> None:
    provider.replies.append(json.dumps({"title": "T", "content": "<p>C</p>", "tags": ["a"]}))
    client = _client(project_root, service)

    resp = client.post(
        "/api/gemini/generate-post",
        json={"products": [{"name": "Widget"}], "seoKeywords": "widget", "save": True},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["title"] == "T"
    assert body["tags"] == ["a"]
    posts = client.get("/api/posts").json()
    assert [p["id"] for p in posts] == [body["id"]]
    assert "content" not in posts[0]
    assert client.get(f"/api/posts/{body['id']}").json()["content"] == "<p>C</p>"


def test_missing_api_key_returns_error_envelope(project_root: Path) -> None:
    store = RecordStore(root_dir=str(project_root))
    client = _client(project_root, BlogService(store, AppConfig(api_key=None)))

    resp = client.post("/api/gemini/generate-post", json={"products": [{"name": "Widget"}]})
    assert resp.status_code == 500
    assert "API key" in resp.json()["message"]

    conn = client.post("/api/test-connection")
    assert conn.status_code == 400
    assert conn.json()["success"] is False
    assert client.get("/api/api-key").json() == {"apiKey": None}


def test_post_delete_twice_and_bulk(project_root: Path, service: BlogService) -> None:
    client = _client(project_root, service)
    first = client.post("/api/posts", json={"title": "One", "content": "1"}).json()["id"]
    second = client.post("/api/posts", json={"title": "Two", "content": "2"}).json()["id"]

    assert client.delete(f"/api/posts/{first}").status_code == 200
    assert client.delete(f"/api/posts/{first}").status_code == 404

    bulk = client.request("DELETE", "/api/posts", json={"ids": [second, first]})
    assert bulk.json() == {"success": True, "count": 1}

    empty = client.request("DELETE", "/api/posts", json={"ids": []})
    assert empty.status_code == 400


def test_settings_mask_api_key(project_root: Path, service: BlogService) -> None:
    client = _client(project_root, service)

    assert client.post("/api/settings", json={"tone": "witty", "apiKey": "abc"}).json() == {"success": True}
    settings = client.get("/api/settings").json()
    assert settings["tone"] == "witty"
    assert settings["apiKey"] == "SET"

    client.post("/api/settings", json={"apiKey": "SET"})
    assert service.get_settings().api_key == "abc"


def test_templates_and_notices(project_root: Path, service: BlogService) -> None:
    client = _client(project_root, service)

    assert len(client.get("/api/templates").json()) == 13
    created = client.post("/api/templates", json={"name": "Mine", "prompt": "Write it."})
    assert created.status_code == 201
    template_id = created.json()["id"]
    assert client.get(f"/api/templates/{template_id}").json()["name"] == "Mine"
    assert client.delete(f"/api/templates/{template_id}").status_code == 200
    assert client.delete(f"/api/templates/{template_id}").status_code == 404

    notices = client.get("/api/notices").json()
    assert notices[0]["level"] == "success"
    assert notices[-1] == {"level": "error", "message": "Template not found", "createdAt": notices[-1]["createdAt"]}
    assert client.get("/api/notices").json() == []


def test_invalid_json_body_and_root(project_root: Path, service: BlogService) -> None:
    client = _client(project_root, service)

    resp = client.post("/api/products", content=b"{oops", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Request body must be valid JSON"

    root = client.get("/")
    assert root.status_code == 200
    assert "No static frontend" in root.json()["message"]
    assert client.get("/api/health").json()["status"] == "ok"


def test_blank_post_id_is_saved_and_readable(project_root: Path, service: BlogService) -> None:
    client = _client(project_root, service)

    created = client.post("/api/posts", json={"id": " ", "title": "Kept", "content": "<p>x</p>"})
    assert created.status_code == 201
    fetched = client.get(f"/api/posts/{created.json()['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Kept"


def test_unknown_tone_is_rejected(project_root: Path, service: BlogService) -> None:
    client = _client(project_root, service)

    resp = client.post("/api/settings", json={"tone": "pirate"})
    assert resp.status_code == 400
    assert "pirate" in resp.json()["message"]
    assert client.get("/api/settings").json()["tone"] == ""
