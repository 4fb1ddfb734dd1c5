"""HTTP surface tests through Flask's test client."""

import io
import os
from pathlib import Path

import pytest

import config
import audit_log


@pytest.fixture
def app(engine_factory):
    from run_server import create_app

    app = create_app(engine_factory)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


class TestQrAndStatus:

    def test_qr_missing_is_404(self, client):
        response = client.get("/qr")

        assert response.status_code == 404
        assert response.get_json()["session"] == "default"

    def test_connect_qr_ready_flow(self, client, engine_factory):
        assert client.post("/connect").get_json() == {"ok": True}
        engine = engine_factory.last

        engine.emit("qr", "2@Zx9ref,abc,def")
        response = client.get("/qr")
        assert response.status_code == 200
        body = response.get_json()
        assert body["session"] == "default"
        assert body["qr"].startswith("data:image/png;base64,")

        engine.emit("ready")
        assert client.get("/qr").status_code == 404
        assert client.get("/status").get_json() == {"ready": True, "session": "default", "state": "READY"}

    def test_qr_encode_error_is_500(self, client, engine_factory, monkeypatch):
        import api_routes

        def broken(value):
            raise ValueError("bad data")

        monkeypatch.setattr(api_routes, "qr_to_data_url", broken)
        client.post("/connect")
        engine_factory.last.emit("qr", "2@abc")

        assert client.get("/qr").status_code == 500

    def test_status_before_connect(self, client):
        assert client.get("/status").get_json() == {"ready": False, "session": "default", "state": "UNINITIALIZED"}


class TestSessionEndpoints:

    def test_session_info(self, client):
        assert client.get("/session").get_json() == {"session": "default", "sessionsFolderExists": False}
        client.post("/connect")
        assert client.get("/session").get_json()["sessionsFolderExists"] is True

    def test_connect_failure_is_500(self, client, engine_factory):
        engine_factory.fail_init = True

        response = client.post("/connect")

        assert response.status_code == 500
        assert "browser failed to start" in response.get_json()["error"]

    def test_disconnect(self, client, engine_factory):
        client.post("/connect")

        assert client.post("/disconnect").get_json() == {"ok": True}
        assert engine_factory.last.destroy_called

    def test_disconnect_without_client(self, client):
        assert client.post("/disconnect").get_json() == {"ok": True}

    def test_delete_session(self, client, engine_factory):
        client.post("/connect")
        Path(config.SESSIONS_ROOT, "default", "Preferences").write_text("{}")

        assert client.delete("/session").get_json() == {"ok": True}

        assert not Path(config.SESSIONS_ROOT, "default", "Preferences").exists()
        assert len(engine_factory.live()) == 1

    def test_delete_session_filesystem_error_is_500(self, client, monkeypatch):
        import storage_manager as sm
        from errors import FilesystemError

        def fail():
            raise FilesystemError("permission denied")

        monkeypatch.setattr(sm, "delete_sessions_root", fail)

        response = client.delete("/session")
        assert response.status_code == 500
        assert response.get_json() == {"error": "permission denied"}


class TestSendMessage:

    def test_missing_number(self, client):
        response = client.post("/send-message", data={"message": "hi"})
        assert response.status_code == 400
        assert response.get_json() == {"error": "number required"}

    def test_missing_message_and_file(self, client):
        response = client.post("/send-message", data={"number": "+15550001111"})
        assert response.status_code == 400
        assert response.get_json() == {"error": "message or file required"}

    def test_without_client(self, client):
        response = client.post("/send-message", data={"number": "+15550001111", "message": "hi"})
        assert response.status_code == 500
        assert response.get_json() == {"error": "Client not initialized"}

    def test_text(self, client, engine_factory):
        client.post("/connect")

        response = client.post("/send-message", data={"number": "+1 (555) 000-1111", "message": "hi"})

        assert response.get_json() == {"ok": True, "id": "true_15550001111@c.us_MSG1"}
        assert engine_factory.last.sent == [("15550001111@c.us", "hi", None)]

    def test_json_body(self, client, engine_factory):
        client.post("/connect")

        response = client.post("/send-message", json={"number": "15550001111", "message": "hi"})

        assert response.status_code == 200

    def test_file_with_caption(self, client, engine_factory):
        client.post("/connect")

        response = client.post(
            "/send-message",
            data={"number": "15550001111", "message": "report", "file": (io.BytesIO(b"col1,col2\n"), "report.csv", "text/csv")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        _, media, caption = engine_factory.last.sent[0]
        assert (media.filename, media.mimetype, caption) == ("report.csv", "text/csv", "report")
        assert media.to_bytes() == b"col1,col2\n"

    def test_engine_error_is_500(self, client, engine_factory):
        client.post("/connect")
        engine_factory.send_error = RuntimeError("not on WhatsApp")

        response = client.post("/send-message", data={"number": "15550001111", "message": "hi"})

        assert response.status_code == 500
        assert response.get_json() == {"error": "not on WhatsApp"}


class TestLogsAndAdmin:

    def test_requests_are_audited(self, client):
        client.get("/status")

        log = audit_log.tail_log(50)
        assert "METHOD: GET" in log
        assert "PATH: /status" in log
        assert "STATUS: 200" in log
        assert log.rstrip().endswith("---")

    def test_logs_tail(self, client):
        audit_log.append_log("READY session=default")

        response = client.get("/logs?lines=1")

        assert response.mimetype == "text/plain"
        assert response.get_data(as_text=True) == "READY session=default"

    def test_logs_default_line_count(self, client):
        for i in range(250):
            audit_log.append_log(f"EVENT n={i}")

        lines = client.get("/logs").get_data(as_text=True).split("\n")

        assert len(lines) == config.LOG_TAIL_DEFAULT_LINES
        assert lines[-1] == "EVENT n=249"

    def test_admin_cleanup_one_session(self, client):
        profile = Path(config.SESSIONS_ROOT) / "work"
        profile.mkdir(parents=True)
        (profile / "SingletonLock").write_text("")

        assert client.post("/admin/cleanup", json={"sessionId": "work"}).get_json() == {"ok": True}
        assert not (profile / "SingletonLock").exists()

    def test_admin_cleanup_all(self, client):
        profile = Path(config.SESSIONS_ROOT) / "default"
        profile.mkdir(parents=True)
        (profile / "LOCK").write_text("")

        assert client.post("/admin/cleanup").get_json() == {"ok": True}
        assert os.listdir(profile) == []

    @pytest.mark.parametrize("session_id", ["absolute", "../project"])
    def test_admin_cleanup_cannot_leave_sessions_root(self, client, gateway_dirs, session_id):
        outside = gateway_dirs / "project"
        outside.mkdir()
        (outside / "yarn.lock").write_text("")
        if session_id == "absolute":
            session_id = str(outside)

        response = client.post("/admin/cleanup", json={"sessionId": session_id})

        assert response.status_code == 400
        assert "invalid session id" in response.get_json()["error"]
        assert (outside / "yarn.lock").exists()

    def test_logs_zero_lines_returns_whole_log(self, client):
        for i in range(3):
            audit_log.append_log(f"EVENT n={i}")

        body = client.get("/logs?lines=0").get_data(as_text=True)

        assert body.startswith("EVENT n=0")
        assert body.endswith("EVENT n=2")

    def test_cors_header(self, client):
        response = client.get("/status", headers={"Origin": "http://example.com"})
        assert response.headers.get("Access-Control-Allow-Origin") == "*"

    def test_index_page(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert b"WhatsApp Session Gateway" in response.data
