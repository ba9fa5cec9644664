import time

import pytest
import src.api.main as main_module
from src.api.main import app, service
from src.git_objects.errors import StoreUnavailableError
from httpx import ASGITransport, AsyncClient

import pytest_asyncio

# Fixture for async client
@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

# Point the global service at a freshly built repository
@pytest.fixture
def mock_repo(repo):
    c1 = repo.commit({"README.md": "hello", "src/app.py": "v1"}, message="Initial", author="Alice")
    c2 = repo.commit({"README.md": "hello", "src/app.py": "v2"}, parents=[c1], message="Second", author="Bob")
    repo.tag("v1", c1)
    service.open(repo.git_dir)
    return repo.git_dir, c1, c2

@pytest.mark.asyncio
async def test_health(client, mock_repo):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

@pytest.mark.asyncio
async def test_get_refs(client, mock_repo):
    _, c1, c2 = mock_repo
    response = await client.get("/api/refs")
    assert response.status_code == 200
    assert response.json() == [
        {"name": "main", "type": "branch", "oid": c2},
        {"name": "v1", "type": "tag", "oid": c1},
    ]

@pytest.mark.asyncio
async def test_get_commits(client, mock_repo):
    _, c1, c2 = mock_repo
    response = await client.get("/api/commits")
    assert response.status_code == 200
    assert [c["oid"] for c in response.json()] == [c2, c1]

    response = await client.get("/api/commits", params={"ref": "v1"})
    assert [c["oid"] for c in response.json()] == [c1]

    response = await client.get("/api/commits", params={"skip": 1, "limit": 5})
    assert [c["oid"] for c in response.json()] == [c1]

@pytest.mark.asyncio
async def test_get_commits_unknown_ref(client, mock_repo):
    response = await client.get("/api/commits", params={"ref": "nope"})
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_get_commit_detail(client, mock_repo):
    _, c1, _ = mock_repo
    response = await client.get(f"/api/commits/{c1}")
    assert response.status_code == 200
    assert response.json()["oid"] == c1
    assert response.json()["message"] == "Initial"

    response = await client.get("/api/commits/" + "0" * 40)
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_get_tree_with_last_modified(client, mock_repo):
    _, c1, c2 = mock_repo
    response = await client.get("/api/tree")
    assert response.status_code == 200
    data = response.json()
    assert data["commit"] == c2
    assert data["annotated"] is True

    entries = {e["name"]: e for e in data["entries"]}
    assert entries["README.md"]["type"] == "file"
    assert entries["README.md"]["last_commit"]["commit_hash"] == c1
    assert entries["README.md"]["last_commit"]["author_name"] == "Alice"
    assert entries["src"]["type"] == "directory"
    assert entries["src"]["last_commit"]["commit_hash"] == c2
    assert entries["src"]["last_commit"]["message"] == "Second"

@pytest.mark.asyncio
async def test_get_subtree(client, mock_repo):
    _, c1, _ = mock_repo
    response = await client.get("/api/tree", params={"ref": "v1", "path": "src"})
    assert response.status_code == 200
    data = response.json()
    assert data["path"] == "src"
    assert [(e["name"], e["last_commit"]["commit_hash"]) for e in data["entries"]] == [("app.py", c1)]

@pytest.mark.asyncio
async def test_get_tree_not_found(client, mock_repo):
    response = await client.get("/api/tree", params={"path": "docs"})
    assert response.status_code == 404
    response = await client.get("/api/tree", params={"ref": "missing"})
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_tree_degrades_when_attribution_fails(client, mock_repo, monkeypatch):
    def broken(*args, **kwargs):
        raise StoreUnavailableError("disk gone")

    monkeypatch.setattr(service, "last_modified", broken)
    response = await client.get("/api/tree")
    assert response.status_code == 200
    data = response.json()
    assert data["annotated"] is False
    assert {e["name"] for e in data["entries"]} == {"README.md", "src"}
    assert all(e["last_commit"] is None for e in data["entries"])

@pytest.mark.asyncio
async def test_tree_degrades_on_timeout(client, mock_repo, monkeypatch):
    def slow(*args, **kwargs):
        time.sleep(0.5)
        return {}

    monkeypatch.setattr(service, "last_modified", slow)
    monkeypatch.setattr(main_module, "LAST_MODIFIED_TIMEOUT", 0.05)
    response = await client.get("/api/tree")
    assert response.status_code == 200
    assert response.json()["annotated"] is False

@pytest.mark.asyncio
async def test_get_blob(client, mock_repo):
    git_dir, _, c2 = mock_repo
    tree = await client.get("/api/tree")
    readme = next(e for e in tree.json()["entries"] if e["name"] == "README.md")

    response = await client.get(f"/api/blob/{readme['oid']}")
    assert response.status_code == 200
    assert response.json()["content"] == "hello"
    assert response.json()["size"] == 5

    response = await client.get(f"/api/blob/{c2}")
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_get_blob_read_failure_is_unavailable(client, mock_repo, monkeypatch):
    tree = await client.get("/api/tree")
    readme = next(e for e in tree.json()["entries"] if e["name"] == "README.md")

    def broken(oid):
        raise StoreUnavailableError("disk gone")

    monkeypatch.setattr(service.store, "read_blob", broken)
    response = await client.get(f"/api/blob/{readme['oid']}")
    assert response.status_code == 503

    response = await client.get("/api/blob/" + "0" * 40)
    assert response.status_code == 503

@pytest.mark.asyncio
async def test_get_blob_missing_object(client, mock_repo):
    response = await client.get("/api/blob/" + "0" * 40)
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_tree_with_unknown_entry_mode_is_unavailable(client, repo):
    repo.commit({"README.md": "hello", "odd": (b"123456", b"x")})
    service.open(repo.git_dir)

    response = await client.get("/api/tree")
    assert response.status_code == 503
