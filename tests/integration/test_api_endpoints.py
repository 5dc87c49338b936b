import json

from fastapi.testclient import TestClient

from editgraph.application.editor_context import EditorContext
from editgraph.infrastructure.persistence.memory import InMemoryPersistence
from editgraph.infrastructure.storage.blob_handles import BlobHandleRegistry
from editgraph.infrastructure.storage.local_storage import LocalDirObjectStore
from editgraph.main import create_app


def upload(client, png, **form):
    files = {"file": ("sample.png", png, "image/png")}
    r = client.post("/versions/upload", files=files, data=form)
    assert r.status_code == 201, r.text
    return r.json()


def test_root_and_health(client):
    assert client.get("/").json()["service"] == "editgraph"
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy", "hydrated": True}


def test_upload_is_synced_to_storage(client, png_bytes):
    body = upload(client, png_bytes)
    version = body["version"]

    assert body["warning"] is None
    assert version["kind"] == "upload"
    assert version["parent_id"] is None
    assert version["sync_status"] == "remote_backed"
    assert version["image_location"].startswith("/local-storage/images/")
    assert version["metadata"]["original_file_name"] == "sample.png"
    assert version["metadata"]["file_size"] == len(png_bytes)

    served = client.get(version["image_location"])
    assert served.status_code == 200
    assert served.content == png_bytes


def test_edit_chain_history_and_branching(client, png_bytes):
    root = upload(client, png_bytes)["version"]
    edit = upload(
        client, png_bytes, kind="ai_edit", parent_id=root["id"],
        metadata=json.dumps({"prompt": "add a rainbow"}),
    )["version"]
    crop = upload(client, png_bytes, kind="crop", parent_id=edit["id"])["version"]
    other = upload(client, png_bytes)["version"]

    assert edit["metadata"]["prompt"] == "add a rainbow"
    assert "original_file_name" not in crop["metadata"]

    # the second upload is now current and starts its own chain
    r = client.get("/versions/current/history")
    assert [v["id"] for v in r.json()["versions"]] == [other["id"]]

    r = client.put("/versions/current", json={"version_id": crop["id"]})
    assert r.status_code == 200
    r = client.get("/versions/current/history")
    assert [v["id"] for v in r.json()["versions"]] == [root["id"], edit["id"], crop["id"]]
    assert client.get("/versions/current/root").json()["root_id"] == root["id"]

    r = client.put("/versions/branch-root", json={"version_id": edit["id"]})
    assert r.json() == {"root_id": edit["id"], "branch_root_id": edit["id"]}
    r = client.get("/versions/current/history")
    assert [v["id"] for v in r.json()["versions"]] == [edit["id"], crop["id"]]

    r = client.put("/versions/branch-root", json={"version_id": None})
    assert r.json()["root_id"] == root["id"]

    stats = client.get("/versions/stats").json()
    assert stats["total"] == 4
    assert stats["by_kind"]["upload"] == 2
    assert stats["by_kind"]["metadata"] == 0

    r = client.get("/versions", params={"kind": "crop"})
    assert [v["id"] for v in r.json()["versions"]] == [crop["id"]]


def test_create_version_from_durable_location(client):
    r = client.post(
        "/versions",
        json={"kind": "upload", "image_location": "https://cdn.example.com/cat.jpg", "metadata": {"tags": ["cat"]}},
    )
    assert r.status_code == 201, r.text
    version = r.json()["version"]
    assert version["image_location"] == "https://cdn.example.com/cat.jpg"
    assert version["remote_key"] is None


def test_invalid_requests(client, png_bytes):
    r = client.post("/versions", json={"kind": "crop", "image_location": "https://x/y.png", "parent_id": "v-missing"})
    assert r.status_code == 400

    r = client.post("/versions/upload", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert r.status_code == 400

    r = client.post(
        "/versions/upload", files={"file": ("a.png", png_bytes, "image/png")}, data={"metadata": "[1, 2]"}
    )
    assert r.status_code == 400

    assert client.put("/versions/current", json={"version_id": "v-missing"}).status_code == 404
    assert client.put("/versions/branch-root", json={"version_id": "v-missing"}).status_code == 404
    assert client.get("/versions/v-missing").status_code == 404
    assert client.get("/versions/current").status_code == 404


def test_delete_version_reparents_and_removes_object(client, png_bytes):
    root = upload(client, png_bytes)["version"]
    edit = upload(client, png_bytes, kind="color", parent_id=root["id"])["version"]
    crop = upload(client, png_bytes, kind="crop", parent_id=edit["id"])["version"]

    r = client.delete(f"/versions/{edit['id']}")
    assert r.status_code == 200
    assert client.delete(f"/versions/{edit['id']}").status_code == 404

    assert client.get(f"/versions/{crop['id']}").json()["parent_id"] == root["id"]
    keys = client.get("/storage/objects").json()["keys"]
    assert edit["remote_key"] not in keys
    assert root["remote_key"] in keys


def test_load_version_from_remote(client, png_bytes):
    version = upload(client, png_bytes)["version"]
    r = client.get(f"/versions/{version['id']}/remote")
    assert r.status_code == 200
    assert r.json()["image_location"].startswith("data:image/png;base64,")


def test_storage_endpoints(client, png_bytes):
    version = upload(client, png_bytes)["version"]

    status = client.get("/storage/status").json()
    assert status == {"configured": True, "reachable": True, "error": None}

    r = client.get("/storage/objects", params={"prefix": f"images/{version['id']}"})
    assert r.json()["keys"] == [version["remote_key"]]

    r = client.get("/storage/objects/metadata", params={"key": version["remote_key"]})
    assert r.json()["metadata"]["versionId"] == version["id"]


def test_clear_versions(client, png_bytes):
    upload(client, png_bytes)
    assert client.delete("/versions").json()["ok"] is True
    assert client.get("/versions").json() == {"versions": [], "total": 0}


def test_unconfigured_storage_keeps_versions_local(png_bytes):
    from editgraph.infrastructure.storage.supabase_storage import SupabaseObjectStore

    context = EditorContext.create(SupabaseObjectStore(None), BlobHandleRegistry(), InMemoryPersistence())
    with TestClient(create_app(context)) as c:
        body = upload(c, png_bytes)
        assert body["version"]["sync_status"] == "local_only"
        assert body["version"]["image_location"].startswith("blob:")
        assert body["warning"]
        assert c.get("/storage/objects").status_code == 409


def test_versions_unavailable_until_hydrated(tmp_path):
    context = EditorContext.create(LocalDirObjectStore(tmp_path), BlobHandleRegistry(), InMemoryPersistence())
    # without the context manager the lifespan never runs
    c = TestClient(create_app(context))
    assert c.get("/versions").status_code == 503
    assert c.get("/health").json()["hydrated"] is False


def test_rejected_upload_does_not_keep_image_bytes(client, png_bytes):
    handles = client.app.state.editor.resolver
    r = client.post(
        "/versions/upload",
        files={"file": ("a.png", png_bytes, "image/png")},
        data={"kind": "crop", "parent_id": "v-missing"},
    )
    assert r.status_code == 400
    assert len(handles) == 0


def test_local_only_bytes_released_on_delete(png_bytes):
    from editgraph.infrastructure.storage.supabase_storage import SupabaseObjectStore

    handles = BlobHandleRegistry()
    context = EditorContext.create(SupabaseObjectStore(None), handles, InMemoryPersistence())
    with TestClient(create_app(context)) as c:
        version = upload(c, png_bytes)["version"]
        assert len(handles) == 1

        assert c.delete(f"/versions/{version['id']}").status_code == 200
        assert len(handles) == 0
