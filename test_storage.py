"""Tests for the diagram stores and image storage."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from flowsketch.document import DiagramDocument
from flowsketch.errors import PersistenceError, TransportError
from flowsketch.storage import (
    LocalDiagramStore,
    Session,
    SupabaseDiagramStore,
    SupabaseImageStorage,
)
from flowsketch.types import DiagramNode, Dimensions, NodeType, Position

BASE_URL = "https://project.supabase.co"
SESSION = Session(user_id="user-1", access_token="token-1")


def sample_document() -> DiagramDocument:
    return DiagramDocument(nodes=(
        DiagramNode("a", NodeType.ELLIPSE, Position(100, 100), Dimensions(180, 80), "Start"),
    ))


def make_store(handler, session: Session = SESSION) -> SupabaseDiagramStore:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return SupabaseDiagramStore(BASE_URL, "anon-key", session, client=client)


class TestSession:
    def test_is_active_requires_user_and_token(self):
        assert SESSION.is_active
        assert not Session().is_active
        assert not Session(user_id="u").is_active


class TestLocalDiagramStore:
    def test_missing_file_loads_nothing(self, tmp_path: Path):
        assert LocalDiagramStore(str(tmp_path / "none.json")).load() is None

    def test_save_then_load(self, tmp_path: Path):
        store = LocalDiagramStore(str(tmp_path / "nested" / "diagram.json"))
        store.save(sample_document())

        assert json.loads(store.path.read_text(encoding="utf-8"))["nodes"][0]["id"] == "a"
        assert store.load() == sample_document()

    def test_corrupted_file(self, tmp_path: Path):
        path = tmp_path / "diagram.json"
        path.write_text("{broken", encoding="utf-8")
        with pytest.raises(PersistenceError):
            LocalDiagramStore(str(path)).load()

    def test_non_utf8_file(self, tmp_path: Path):
        path = tmp_path / "diagram.json"
        path.write_bytes(b"\xff\xfe")
        with pytest.raises(PersistenceError, match="Corrupted diagram file"):
            LocalDiagramStore(str(path)).load()

    def test_invalid_document(self, tmp_path: Path):
        path = tmp_path / "diagram.json"
        path.write_text('{"edges": []}', encoding="utf-8")
        with pytest.raises(PersistenceError):
            LocalDiagramStore(str(path)).load()


class TestSupabaseDiagramStore:
    def test_load_latest_row(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers.get("Authorization")
            seen["apikey"] = request.headers.get("apikey")
            return httpx.Response(200, json=[{"id": "d-1", "diagram_data": sample_document().to_dict()}])

        store = make_store(handler)
        assert store.load() == sample_document()
        assert store.diagram_id == "d-1"
        assert seen["method"] == "GET"
        assert seen["path"] == "/rest/v1/diagrams"
        assert seen["params"]["user_id"] == "eq.user-1"
        assert seen["params"]["order"] == "updated_at.desc"
        assert seen["params"]["limit"] == "1"
        assert seen["auth"] == "Bearer token-1"
        assert seen["apikey"] == "anon-key"

    def test_load_without_rows(self):
        store = make_store(lambda request: httpx.Response(200, json=[]))
        assert store.load() is None
        assert store.diagram_id is None

    def test_first_save_inserts_then_updates(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.method == "POST":
                return httpx.Response(201, json=[{"id": "new-id"}])
            return httpx.Response(204)

        store = make_store(handler)
        store.save(sample_document(), title="Login flow", description="Login flow")
        store.save(sample_document())

        insert, update = requests
        assert insert.method == "POST"
        assert insert.headers["Prefer"] == "return=representation"
        inserted = json.loads(insert.content)
        assert inserted["user_id"] == "user-1"
        assert inserted["title"] == "Login flow"
        assert inserted["diagram_data"] == sample_document().to_dict()

        assert update.method == "PATCH"
        assert dict(update.url.params) == {"id": "eq.new-id"}
        assert "updated_at" in json.loads(update.content)

    def test_default_title(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json=[{"id": 7}])

        store = make_store(handler)
        store.save(DiagramDocument())
        assert bodies[0]["title"] == "Untitled Diagram"
        assert store.diagram_id == "7"

    def test_requires_active_session(self):
        store = make_store(lambda request: httpx.Response(200, json=[]), session=Session())
        with pytest.raises(PersistenceError):
            store.load()
        with pytest.raises(PersistenceError):
            store.save(DiagramDocument())

    def test_error_status(self):
        store = make_store(lambda request: httpx.Response(401, json={"message": "JWT expired"}))
        with pytest.raises(PersistenceError, match="401"):
            store.save(DiagramDocument())

    def test_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        with pytest.raises(TransportError):
            make_store(handler).load()


class TestSupabaseImageStorage:
    def test_upload_returns_public_url(self, tmp_path: Path):
        image = tmp_path / "photo.PNG"
        image.write_bytes(b"\x89PNG fake")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["content"] = request.content
            seen["type"] = request.headers.get("Content-Type")
            seen["upsert"] = request.headers.get("x-upsert")
            return httpx.Response(200, json={"Key": "diagram-images/user-1/1700000000000.png"})

        storage = SupabaseImageStorage(
            BASE_URL,
            "anon-key",
            SESSION,
            client=httpx.Client(transport=httpx.MockTransport(handler)),
            clock=lambda: 1700000000.0,
        )
        url = storage.upload(str(image))

        assert seen["path"] == "/storage/v1/object/diagram-images/user-1/1700000000000.png"
        assert seen["content"] == b"\x89PNG fake"
        assert seen["type"] == "image/png"
        assert seen["upsert"] == "false"
        assert url == f"{BASE_URL}/storage/v1/object/public/diagram-images/user-1/1700000000000.png"

    def test_missing_file(self, tmp_path: Path):
        storage = SupabaseImageStorage(
            BASE_URL,
            "anon-key",
            SESSION,
            client=httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200))),
        )
        with pytest.raises(PersistenceError):
            storage.upload(str(tmp_path / "missing.png"))
