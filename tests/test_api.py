"""
HTTP boundary tests via FastAPI's TestClient.

The process-wide controller is replaced with one wired to the in-memory
catalog and a stub oracle; startup preload is skipped.
"""

import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from storebot.api import server
from storebot.core.controller import ChatController
from storebot.taxonomy.cache import TaxonomyCache


@pytest.fixture
def oracle(stub_oracle):
    return stub_oracle(
        classification=json.dumps({"intent": "product_query", "categories": ["Conjuntos"]}),
        validation=json.dumps({"tiene_especificaciones": False, "productos_finales": []}),
        response="Tenemos el Baby Onesie a S/ 20.00.",
        general="Abrimos de 9 a 9.",
    )


@pytest.fixture
def client(catalog, oracle, config, fake_clock, tmp_path, monkeypatch):
    controller = ChatController(catalog, oracle, TaxonomyCache(catalog, clock=fake_clock), config)
    server.set_controller(controller)
    monkeypatch.setattr(server, "CONVERSATION_LOG_DIR", tmp_path / "sessions")
    yield TestClient(server.app)
    server.set_controller(None)


# ============================================================================
# /api/chat
# ============================================================================

class TestChat:
    def test_product_reply_carries_marker(self, client):
        resp = client.post("/api/chat", data={"prompt": "tienen bodys para bebé", "history": "[]"})
        assert resp.status_code == 200
        body = resp.json()
        assert "20.00" in body["response"]
        assert "[PRODUCTOS:onesie-1" in body["response"]

    @pytest.mark.parametrize("prompt", ["", "   "])
    def test_empty_prompt_is_rejected(self, client, oracle, prompt):
        resp = client.post("/api/chat", data={"prompt": prompt, "history": "[]"})
        assert resp.status_code == 400
        assert "error" in resp.json()
        assert oracle.calls == []

    def test_missing_prompt_is_rejected(self, client):
        assert client.post("/api/chat", data={"history": "[]"}).status_code == 400

    @pytest.mark.parametrize("history", ["{no es json", '{"role": "user"}', "null"])
    def test_malformed_history_is_treated_as_empty(self, client, oracle, history):
        resp = client.post("/api/chat", data={"prompt": "bodys", "history": history})
        assert resp.status_code == 200
        assert "(sin historial)" in oracle.prompts_for("classification")[0]

    def test_history_is_forwarded(self, client, oracle):
        history = json.dumps([
            {"role": "user", "text": "hola"},
            {"role": "model", "text": "¡Hola! ¿Qué buscas?"},
        ])
        client.post("/api/chat", data={"prompt": "bodys", "history": history})
        prompt = oracle.prompts_for("classification")[0]
        assert "Cliente: hola" in prompt
        assert "Asistente: ¡Hola! ¿Qué buscas?" in prompt

    def test_image_is_attached(self, client, oracle):
        resp = client.post(
            "/api/chat",
            data={"prompt": "¿tienen algo así?", "history": "[]"},
            files={"image": ("foto.png", b"\x89PNG-data", "image/png")},
        )
        assert resp.status_code == 200
        image = oracle.calls[0]["image"]
        assert image.data == b"\x89PNG-data"
        assert image.mime_type == "image/png"

    def test_turn_is_logged_per_session(self, client, tmp_path):
        client.post("/api/chat", data={"prompt": "bodys", "history": "[]", "session_id": "s-1"})
        lines = (tmp_path / "sessions" / "s-1.jsonl").read_text(encoding="utf-8").splitlines()
        entry = json.loads(lines[0])
        assert entry["user_message"] == "bodys"
        assert entry["response_type"] == "products"
        assert entry["product_ids"]

    def test_turns_without_session_id_share_one_log(self, client, tmp_path):
        client.post("/api/chat", data={"prompt": "hola", "history": "[]"})
        client.post("/api/chat", data={"prompt": "bodys", "history": "[]"})
        log_files = list((tmp_path / "sessions").iterdir())
        assert [f.name for f in log_files] == ["anonymous.jsonl"]
        assert len(log_files[0].read_text(encoding="utf-8").splitlines()) == 2

    def test_session_id_cannot_escape_log_dir(self, client, tmp_path):
        client.post("/api/chat", data={"prompt": "bodys", "history": "[]", "session_id": "../fuera"})
        assert not (tmp_path / "fuera.jsonl").exists()
        assert [f.name for f in (tmp_path / "sessions").iterdir()] == ["___fuera.jsonl"]

    def test_error_bodies_are_documented(self, client):
        responses = client.get("/openapi.json").json()["paths"]["/api/chat"]["post"]["responses"]
        for status in ("400", "500"):
            schema = responses[status]["content"]["application/json"]["schema"]
            assert schema["$ref"].endswith("/ErrorResponse")

    def test_unexpected_failure_is_generic_500(self, client):
        broken = MagicMock()
        broken.respond.side_effect = RuntimeError("secreto interno")
        server.set_controller(broken)
        resp = client.post("/api/chat", data={"prompt": "bodys", "history": "[]"})
        assert resp.status_code == 500
        assert "secreto" not in resp.json()["error"]


# ============================================================================
# Product resolution and metadata
# ============================================================================

class TestResolve:
    def test_resolves_marker_and_strips_text(self, client):
        resp = client.post("/api/products/resolve", json={"text": "Mira esto [PRODUCTOS:onesie-1,gone]"})
        body = resp.json()
        assert [p["id"] for p in body["products"]] == ["onesie-1"]
        assert body["display_text"] == "Mira esto"

    def test_explicit_ids(self, client):
        resp = client.post("/api/products/resolve", json={"ids": ["blusa-1", "gone", "mochila-1"]})
        assert [p["id"] for p in resp.json()["products"]] == ["blusa-1", "mochila-1"]

    def test_text_without_marker(self, client):
        body = client.post("/api/products/resolve", json={"text": "Hola"}).json()
        assert body == {"products": [], "display_text": "Hola"}


class TestMetadata:
    def test_taxonomy(self, client):
        categories = client.get("/api/taxonomy").json()["categories"]
        assert categories["Conjuntos"] == ["Bodies para bebé", "Pijamas"]

    def test_welcome(self, client):
        assert client.get("/api/welcome").json()["response"].startswith("¡Hola!")

    def test_health(self, client):
        body = client.get("/").json()
        assert body["status"] == "online"
        assert body["config"]["filter_threshold"] == 6
