"""Tests for the command line interface."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from taskflow.cli import cli, read_records
from taskflow.utils.logging import configure_logging

EVENTS = [
    {"type": "GO_TO_LOGIN"},
    {"type": "LOGIN_SUCCESS", "payload": {"user": {"email": "a@example.com"}}},
    {"type": "GO_TO_ASSIGN_TASK"},
]


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    configure_logging()


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, tmp_path):
    def _invoke(*args):
        return runner.invoke(cli, ["--config", str(tmp_path), "--log-level", "error", *args])

    return _invoke


@pytest.fixture
def events_file(tmp_path):
    path = tmp_path / "events.jsonl"
    path.write_text("\n".join(json.dumps(e) for e in EVENTS) + "\n", encoding="utf-8")
    return path


def test_describe_json(invoke):
    result = invoke("describe", "--format", "json")

    assert result.exit_code == 0
    structure = json.loads(result.stdout)
    assert structure["id"] == "taskManagement"
    assert set(structure["states"]) == {
        "signup",
        "login",
        "dashboard",
        "assignTask",
        "pendingTasks",
        "completedTasks",
        "profileSettings",
    }


def test_describe_table(invoke):
    result = invoke("describe")

    assert result.exit_code == 0
    assert "Machine: taskManagement (initial: signup)" in result.stdout
    assert "dashboard [idle, loading]" in result.stdout
    assert "  LOGOUT -> login" in result.stdout


def test_replay_in_sync(invoke, events_file):
    result = invoke("replay", str(events_file), "--strict")

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["events"] == 3
    assert report["mode"] == "replay"
    assert report["diverged"] is False
    assert report["authoritative"]["state"] == "assignTask"
    assert report["mirror"] == report["authoritative"]
    assert report["stats"]["handled"] == 3


def test_replay_skipped_event_diverges(invoke, events_file):
    result = invoke("replay", str(events_file), "--skip-mirror", "3", "--strict")

    assert result.exit_code == 20
    report = json.loads(result.stdout)
    assert report["diverged"] is True
    assert report["authoritative"]["state"] == "assignTask"
    assert report["mirror"]["state"] == {"dashboard": "idle"}


def test_replay_snapshot_mode_recovers(invoke, events_file):
    result = invoke("replay", str(events_file), "--mode", "snapshot", "--skip-mirror", "2", "--strict")

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["mode"] == "snapshot"
    assert report["diverged"] is False


def test_replay_rejects_bad_input(invoke, tmp_path):
    path = tmp_path / "bad.jsonl"
    path.write_text('{"type": "GO_TO_LOGIN"}\nnot json\n', encoding="utf-8")

    assert invoke("replay", str(path)).exit_code == 11

    path.write_text('[{"payload": {}}]', encoding="utf-8")
    assert invoke("replay", str(path)).exit_code == 11


def test_run_drives_gateway(invoke, tmp_path):
    requests = tmp_path / "requests.json"
    requests.write_text(json.dumps([
        {
            "type": "SIGNUP",
            "data": {
                "email": "lead@example.com",
                "password": "pw",
                "firstName": "Ada",
                "lastName": "Lovelace",
                "role": "teamLead",
            },
        },
        {"type": "LOGIN", "data": {"email": "lead@example.com", "password": "pw"}},
        {"refresh": "users"},
        {"type": "BOGUS"},
    ]), encoding="utf-8")
    (tmp_path / "taskflow.yaml").write_text(
        "machine:\n  log_transitions: false\nsecurity:\n  time_cost: 1\n  memory_cost: 8\n  parallelism: 1\n",
        encoding="utf-8",
    )
    store_path = tmp_path / "store.json"

    result = invoke("run", str(requests), "--store", str(store_path))

    assert result.exit_code == 0
    responses = json.loads(result.stdout)
    assert [r["status"] for r in responses] == [200, 200, 200, 400]
    assert responses[1]["body"]["state"] == {"dashboard": "idle"}
    assert responses[2]["request"] == "refresh:users"
    assert responses[2]["body"]["users"][0]["email"] == "lead@example.com"
    assert store_path.exists()


def test_check_config(invoke, tmp_path):
    (tmp_path / "taskflow.yaml").write_text("machine:\n  sync_mode: snapshot\n", encoding="utf-8")

    result = invoke("check-config")

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["status"] == "valid"
    assert report["config"]["machine"]["sync_mode"] == "snapshot"


def test_invalid_config_exit_code(runner, tmp_path):
    (tmp_path / "taskflow.yaml").write_text("store:\n  backend: sql\n", encoding="utf-8")

    result = runner.invoke(cli, ["--config", str(tmp_path), "check-config"])

    assert result.exit_code == 10


def test_read_records_forms(tmp_path):
    array = tmp_path / "a.json"
    array.write_text('[{"type": "A"}, {"type": "B"}]', encoding="utf-8")
    lines = tmp_path / "b.jsonl"
    lines.write_text('{"type": "A"}\n\n{"type": "B"}\n', encoding="utf-8")
    empty = tmp_path / "c.json"
    empty.write_text("  \n", encoding="utf-8")

    assert read_records(array).unwrap() == [{"type": "A"}, {"type": "B"}]
    assert read_records(lines).unwrap() == [{"type": "A"}, {"type": "B"}]
    assert read_records(empty).unwrap() == []

    lines.write_text('{"type": "A"}\n[1]\n', encoding="utf-8")
    error = read_records(lines).unwrap_err()
    assert error.line == 2
    assert error.message == "Expected an object"
