"""
Tests for the CalcNote API server.
"""

from fastapi.testclient import TestClient

from calcnote.api_server import create_app
from calcnote.notebook import Notebook


def make_client(text="a = 3\na * 2", delay_ms=10_000):
    notebook = Notebook(text=text, delay_ms=delay_ms)
    return TestClient(create_app(notebook)), notebook


def edit(from_a, to_a, inserted):
    return {"from_a": from_a, "to_a": to_a, "from_b": from_a,
            "to_b": from_a + len(inserted), "inserted": inserted}


def test_health_check():
    client, _ = make_client()
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "running"


def test_markers_after_startup():
    client, _ = make_client()
    body = client.get("/api/markers").json()

    assert body["provisional"] is False
    assert [marker["offset"] for marker in body["markers"]] == [5, 11]
    assert [marker["text"] for marker in body["markers"]] == ["3", "6"]


def test_edit_then_recompute():
    with TestClient(create_app(Notebook(text="a = 3\na * 2", delay_ms=10_000))) as client:
        body = client.post("/api/edits", json={"changes": [edit(4, 5, "10")]}).json()

        assert body["provisional"] is True
        assert [marker["offset"] for marker in body["markers"]] == [6, 12]
        assert [marker["text"] for marker in body["markers"]] == ["3", "6"]

        assert client.get("/api/document").json() == {"text": "a = 10\na * 2"}

        body = client.post("/api/recompute").json()
        assert [result["value"] for result in body["results"]] == ["10", "20"]
        assert body["evaluated"] == 2

        markers = client.get("/api/markers").json()
        assert markers["provisional"] is False
        assert [marker["text"] for marker in markers["markers"]] == ["10", "20"]


def test_replace_document():
    client, notebook = make_client()
    body = client.put("/api/document", json={"text": "x = 5\ny = 2\nx + 1\nnope"}).json()

    assert [result["value"] for result in body["results"]] == ["5", "2", "6", ""]
    assert body["results"][3]["error"].startswith("NameError")
    assert notebook.text == "x = 5\ny = 2\nx + 1\nnope"

    body = client.put("/api/document", json={"text": "x = 5\ny = 3\nx + 1\nnope"}).json()
    assert [result["reused"] for result in body["results"]] == [True, False, True, True]
    assert body["reused"] == 3


def test_invalid_edit_is_rejected():
    client, _ = make_client()
    response = client.post("/api/edits", json={"changes": [edit(40, 50, "x")]})
    assert response.status_code == 400


def test_websocket_session():
    with TestClient(create_app(Notebook(text="a = 3\na * 2", delay_ms=10_000))) as client:
        with client.websocket_connect("/ws") as websocket:
            assert websocket.receive_json() == {"type": "document", "text": "a = 3\na * 2"}
            initial = websocket.receive_json()
            assert initial["type"] == "results"
            assert [marker["text"] for marker in initial["markers"]] == ["3", "6"]

            websocket.send_json({"type": "edit", "changes": [edit(4, 5, "10")]})
            provisional = websocket.receive_json()
            assert provisional["type"] == "markers"
            assert provisional["provisional"] is True
            assert [marker["offset"] for marker in provisional["markers"]] == [6, 12]

            websocket.send_json({"type": "recompute"})
            final = websocket.receive_json()
            assert final["type"] == "results"
            assert [marker["text"] for marker in final["markers"]] == ["10", "20"]
            assert final["changed"] == [0, 1]

            websocket.send_json({"type": "bogus"})
            assert websocket.receive_json()["type"] == "error"


def test_websocket_pushes_results_after_debounce():
    """Test an edit is followed by a pushed results message without asking for a recompute"""
    print("Testing debounced push...")
    notebook = Notebook(text="a = 3\na * 2", delay_ms=20)
    with TestClient(create_app(notebook)) as client:
        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()
            websocket.receive_json()

            websocket.send_json({"type": "edit", "changes": [edit(4, 5, "10")]})
            assert websocket.receive_json()["type"] == "markers"

            pushed = websocket.receive_json()
            assert pushed["type"] == "results"
            assert pushed["provisional"] is False
            assert [(marker["offset"], marker["text"]) for marker in pushed["markers"]] == [(6, "10"), (12, "20")]
            assert notebook.passes == 2
    print("✓ Debounced push passed")


def test_websocket_rejects_non_string_text():
    notebook = Notebook(text="a = 3\na * 2", delay_ms=10_000)
    with TestClient(create_app(notebook)) as client:
        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()
            websocket.receive_json()

            websocket.send_json({"type": "set_text", "text": 5})
            assert websocket.receive_json()["type"] == "error"

            websocket.send_json({"type": "edit", "changes": [{"from_a": "x"}]})
            assert websocket.receive_json()["type"] == "error"

            websocket.send_json({"type": "set_text", "text": "a = 4\na * 2"})
            assert websocket.receive_json()["type"] == "results"

        assert notebook.text == "a = 4\na * 2"
        body = client.post("/api/recompute").json()
        assert [result["value"] for result in body["results"]] == ["4", "8"]


def test_closed_websocket_leaves_no_connection_behind():
    app = create_app(Notebook(text="1 + 1", delay_ms=10_000))
    with TestClient(app) as client:
        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()
            websocket.receive_json()
            assert len(app.state.manager.active_connections) == 1

        assert app.state.manager.active_connections == []
