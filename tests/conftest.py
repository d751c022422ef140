"""
Shared fixtures for the chat flow tests
───────────────────────────────────────
• A fresh FlowEngine per test.
• Helpers that drive an engine through a list of inputs.
• A context that has already reached the search stage, for tests that
  start from the caller-driven states.
"""

import pytest

from core.conversation.orchestration import FlowEngine
from models.schemas import FlowState, SessionContext


# OS details a browser-based caller detects before the first message
DETECTED_PLATFORM = {
    "device": {"device_type": "Laptop", "os_family": "Windows", "os_version": "11"},
}

SAVED_WORK_LAPTOP = {
    "id": "dev-1",
    "name": "Work Laptop",
    "device_type": "Laptop",
    "manufacturer": "Dell",
    "model": "XPS 15",
    "os_family": "Windows",
    "os_version": "11",
}

CANDIDATE = {"url": "https://vendor.example.com/vlc.exe", "title": "VLC media player"}


def run(engine: FlowEngine, inputs):
    """Feed inputs in order and return the last directive"""
    directive = engine.render()
    for raw in inputs:
        directive = engine.transition(raw)
    return directive


@pytest.fixture
def engine():
    return FlowEngine()


@pytest.fixture
def confirmed_context():
    """Manual HP laptop, Audio driver, confirmed"""
    return {
        "intent": "driver",
        "device": {
            "device_type": "Laptop",
            "os_family": "Windows",
            "os_version": "11",
            "manufacturer": "HP",
            "model": "EliteBook 840",
        },
        "request": {"driver_type": "Audio"},
        "confirmation": {"summary": "Confirm: HP EliteBook 840", "confirmed": True},
    }


@pytest.fixture
def searching_engine(confirmed_context):
    """Engine waiting in SEARCH_AND_EXTRACT"""
    return FlowEngine(
        state=FlowState.SEARCH_AND_EXTRACT,
        context=SessionContext.model_validate(confirmed_context),
    )


@pytest.fixture
def result_engine(searching_engine):
    """Engine waiting in PRESENT_RESULT after a clean scan"""
    searching_engine.inject({"outcomes": {"candidate_links": [CANDIDATE]}})
    run(searching_engine, ["results:ok", "risk:verified", "history:h-1"])
    assert searching_engine.state == FlowState.PRESENT_RESULT
    return searching_engine
