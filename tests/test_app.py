import io
import time

import pytest

import app as web
from conftest import build_i_record


@pytest.fixture
def client():
    web.app.config["TESTING"] = True
    with web.app.test_client() as c:
        yield c


def test_decode_uploads(client):
    data = {
        "files": [
            (io.BytesIO(build_i_record("C:\\one.txt", size=5)), "$IONE.txt"),
            (io.BytesIO(b"\x00\x01"), "$ISHORT"),
        ]
    }
    resp = client.post("/api/decode", data=data, content_type="multipart/form-data")
    assert resp.status_code == 200
    ok, bad = resp.get_json()

    assert ok["status"] == "success"
    assert ok["line"] == "C:\\one.txt | Deleted on 1/1/2020 0:0:0 UTC"
    assert ok["record"]["file_size"] == 5
    assert ok["record"]["deleted_at"] == "2020-01-01T00:00:00.000Z"
    assert ok["record"]["calendar_time"]["year"] == 2020

    assert bad["file"] == "$ISHORT"
    assert bad["status"] == "error"


def test_decode_requires_files(client):
    resp = client.post("/api/decode")
    assert resp.status_code == 400


def test_parse_folder_task(client, recycle_bin):
    resp = client.post("/api/parse_folder", json={"folder_path": str(recycle_bin)})
    assert resp.status_code == 202
    task_id = resp.get_json()["task_id"]

    for _ in range(100):
        status = client.get(f"/api/task_status/{task_id}").get_json()
        if status["status"] != "in_progress":
            break
        time.sleep(0.05)
    assert status["status"] == "completed"
    assert len(status["result"]["records"]) == 2
    # a finished task is gone once its status has been read
    assert client.get(f"/api/task_status/{task_id}").status_code == 404
    assert task_id not in web.tasks


def test_parse_folder_rejects_bad_path(client, tmp_path):
    assert client.post("/api/parse_folder", json={}).status_code == 400
    resp = client.post("/api/parse_folder", json={"folder_path": str(tmp_path / "nope")})
    assert resp.status_code == 400


def test_unknown_task(client):
    assert client.get("/api/task_status/does-not-exist").status_code == 404


def test_export_csv(client, recycle_bin):
    resp = client.post("/api/export_csv", json={"folder_path": str(recycle_bin)})
    assert resp.status_code == 200
    assert "attachment" in resp.headers["Content-Disposition"]
    body = resp.get_data(as_text=True)
    assert "C:\\pics\\cat.jpg" in body
    resp.close()


def test_export_pdf(client, recycle_bin):
    resp = client.post("/api/export_pdf", json={"folder_path": str(recycle_bin), "Case ID": "CASE-9"})
    assert resp.status_code == 200
    assert resp.data.startswith(b"%PDF")
    resp.close()


def test_export_empty_folder(client, tmp_path):
    resp = client.post("/api/export_csv", json={"folder_path": str(tmp_path)})
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "info"


def test_failed_task_recorded(monkeypatch):
    monkeypatch.setattr(web, "tasks", {})

    def boom(folder):
        raise RuntimeError("disk went away")

    web.run_in_background("t-fail", boom, "/nowhere")
    assert web.tasks["t-fail"] == {"status": "failed", "message": "disk went away"}


def test_unread_finished_tasks_are_capped(monkeypatch):
    monkeypatch.setattr(web, "MAX_FINISHED_TASKS", 2)
    monkeypatch.setattr(web, "tasks", {"running": {"status": "in_progress", "message": ""}})

    for i in range(5):
        web.run_in_background(f"t{i}", lambda: {"status": "success", "message": "ok"})

    assert list(web.tasks) == ["running", "t3", "t4"]
