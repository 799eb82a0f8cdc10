"""Tests for the state logger and structure description."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from taskflow.fsm import Interpreter, attach_state_logger, describe_structure
from taskflow.utils.logging import configure_logging

pytestmark = pytest.mark.fsm


@pytest.fixture(autouse=True)
def debug_logging():
    configure_logging(level="debug")
    yield
    configure_logging(level="info")


def test_state_logger_logs_start_and_transitions(definition):
    machine = Interpreter(definition, name="mirror")
    attach_state_logger(machine)

    with capture_logs() as logs:
        machine.start()
        machine.send("GO_TO_LOGIN")
        machine.send("LOGOUT")

    events = [entry["event"] for entry in logs]
    assert "fsm_started" in events
    assert "event_ignored" in events

    transition = next(entry for entry in logs if entry["event"] == "state_transition")
    assert transition["previous_state"] == "signup"
    assert transition["state"] == "login"
    assert transition["event_type"] == "GO_TO_LOGIN"
    assert transition["instance"] == "mirror"


def test_state_logger_summarizes_context(definition):
    machine = Interpreter(definition)
    attach_state_logger(machine)
    machine.start()

    with capture_logs() as logs:
        machine.send("LOGIN_SUCCESS", user={"email": "a@b.com", "password": "never-logged"})

    transition = next(entry for entry in logs if entry["event"] == "state_transition")
    assert transition["context"] == {
        "user": "a@b.com",
        "tasks": 0,
        "users": 0,
        "current_task": None,
        "error": None,
    }


def test_describe_structure(definition):
    structure = describe_structure(definition)

    assert structure["id"] == "taskManagement"
    assert structure["initial"] == "signup"
    assert structure["states"]["dashboard"]["nested"] == ["idle", "loading"]
    assert structure["states"]["dashboard"]["targets"]["LOGOUT"] == "login"
    assert "LOAD_TASKS" not in structure["states"]["dashboard"]["targets"]
    assert "SAVE_PROFILE" in structure["states"]["profileSettings"]["events"]
