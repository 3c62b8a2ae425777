from fastapi.testclient import TestClient

from linwheel.main import app

client = TestClient(app)

CRON = {"Authorization": "Bearer test-cron-secret"}


def test_scheduler_endpoints_need_secret():
    assert client.get("/scheduler/status").status_code == 401


def test_start_rejects_bad_cron():
    resp = client.post("/scheduler/start", params={"cron": "every tuesday"}, headers=CRON)
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid cron expression")


def test_start_status_stop():
    resp = client.post("/scheduler/start", params={"cron": "0 9 * * *"}, headers=CRON)
    assert resp.json() == {"status": "started", "cron": "0 9 * * *"}
    try:
        assert client.post("/scheduler/start", headers=CRON).json() == {"status": "already-running"}
        status = client.get("/scheduler/status", headers=CRON).json()
        assert status["running"] is True
        assert status["next_run_at"].endswith("09:00:00+00:00")
    finally:
        assert client.post("/scheduler/stop", headers=CRON).json() == {"status": "stopped"}
    assert client.get("/scheduler/status", headers=CRON).json() == {"running": False, "next_run_at": None}


def test_run_now_returns_summary():
    body = client.post("/scheduler/run", headers=CRON).json()
    assert body["processed"] == 0
    assert body["errors"] == []
