import time

from fastapi.testclient import TestClient

from can_backend import metrics
from can_backend.api.main import app


def wait_for_snapshot(client, predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        data = client.get("/api/snapshot").json()
        if predicate(data):
            return data
        time.sleep(0.05)
    raise AssertionError("snapshot never reached the expected state")


def setup_function():
    metrics.reset_all()


def test_injected_frames_show_up_in_snapshot(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    with TestClient(app) as client:
        for can_id, data in ((0x101, "E89F1F4150378C41"), (0x102, "2526000000000000"),
                             (0x106, "39103110C0DA0EE2")):
            r = client.post("/api/send-frame", json={"can_id": can_id, "data": data})
            assert r.status_code == 200

        snap = wait_for_snapshot(client, lambda d: d["values"]["battery_voltage"] is not None)
        assert snap["values"]["battery_state_of_charge"] == 97.65
        assert snap["values"]["battery_voltage"] == 56.0
        assert abs(snap["derived"]["input_power"] - 56.0 * 9.9765) < 0.1
        # peripheral current never arrived
        assert snap["derived"]["net_power"] is None
        assert snap["stats"]["frames_decoded"] >= 3

        m = client.get("/api/metrics").json()
        assert m.get("sim_inject", 0) == 3
        assert m.get("telemetry_frames_decoded", 0) >= 3


def test_send_frame_validation(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    with TestClient(app) as client:
        assert client.post("/api/send-frame", json={"can_id": 0x100}).status_code == 400
        assert client.post("/api/send-frame", json={"can_id": 0x20000000, "data": "00"}).status_code == 400
        assert client.post("/api/send-frame", json={"can_id": "abc", "data": "00"}).status_code == 400
        assert client.post("/api/send-frame", json={"can_id": 0x100, "data": "zz"}).status_code == 400
        assert client.post("/api/send-frame", json={"can_id": 0x100, "data": "00" * 9}).status_code == 400
        assert client.post("/api/send-frame", json={"can_id": 0x1B09, "data": "00 01-02"}).status_code == 200


def test_nan_values_are_served_as_null(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    with TestClient(app) as client:
        # pack current = NaN, peripheral current = 1.0
        r = client.post("/api/send-frame", json={"can_id": 0x100, "data": "0000C07F0000803F"})
        assert r.status_code == 200
        snap = wait_for_snapshot(client, lambda d: d["values"]["battery_current_out_peripherals"] is not None)
        assert snap["values"]["battery_current_pack"] is None
        assert snap["values"]["battery_current_out_peripherals"] == 1.0
