import pytest

from config import settings
from core.conversation.orchestration import FlowEngine, SessionRestoreError
from core.conversation.state_config import UnknownFlowStateError
from models.schemas import (
    FlowState,
    Intent,
    RiskStatus,
    SaveChoice,
    ExternalAction,
    UIType,
    SessionContext,
)

from conftest import run, DETECTED_PLATFORM, SAVED_WORK_LAPTOP, CANDIDATE


# ── End-to-end conversations ────────────────────────────────────────────────

def test_driver_flow_reaches_search(engine):
    engine.inject(DETECTED_PLATFORM)
    directive = run(engine, ["driver", "HP", "EliteBook 840", "I don't know", "Audio", "Yes"])

    assert directive.state == FlowState.SEARCH_AND_EXTRACT
    assert directive.awaits == ExternalAction.SEARCH
    ctx = engine.context
    assert ctx.intent == Intent.DRIVER
    assert ctx.device.manufacturer == "HP"
    assert ctx.device.model == "EliteBook 840"
    assert ctx.device.serial is None
    assert ctx.request.driver_type == "Audio"
    assert ctx.confirmation.confirmed is True


def test_free_text_falls_back_to_software(engine):
    directive = engine.transition("I need VLC")

    assert directive.state != FlowState.DETECT_INTENT
    assert engine.context.intent == Intent.SOFTWARE
    assert engine.context.request.query_name == "I need VLC"


def test_declining_install_help_skips_guide(result_engine):
    run(result_engine, ["Continue", "Not now"])
    assert result_engine.state == FlowState.OFFER_INSTALL_HELP

    directive = result_engine.transition("No, thank you")

    assert directive.state == FlowState.END
    assert FlowState.INSTALL_GUIDE not in result_engine.history


def test_edit_at_confirmation_restarts(engine):
    engine.inject(DETECTED_PLATFORM)
    run(engine, ["driver", "Dell", "XPS 15", "ABC123", "Wi-Fi"])
    assert engine.state == FlowState.CONFIRM_SUMMARY

    directive = engine.transition("Edit")

    assert directive.state == FlowState.DETECT_INTENT
    assert engine.context == SessionContext()


def test_manual_device_collection_order(engine):
    run(engine, ["game"])
    visited = [engine.state]
    for answer in ["Desktop", "Windows", "11", "ASUS", "ROG Strix"]:
        engine.transition(answer)
        visited.append(engine.state)

    assert visited == [
        FlowState.ASK_DEVICE_TYPE,
        FlowState.ASK_OS_FAMILY,
        FlowState.ASK_OS_VERSION,
        FlowState.ASK_MANUFACTURER,
        FlowState.ASK_MODEL,
        FlowState.ASK_REQUEST_DETAILS,
    ]


def test_saved_device_skips_device_questions(engine):
    engine.inject({"saved_devices": [SAVED_WORK_LAPTOP]})
    directive = engine.transition("driver")
    assert directive.state == FlowState.SELECT_SAVED_DEVICE
    assert "Work Laptop" in directive.ui.options

    directive = engine.transition("Work Laptop")

    assert directive.state == FlowState.ASK_REQUEST_DETAILS
    assert engine.context.device_selected_from_profile is True
    assert engine.context.device_id == "dev-1"
    assert engine.context.device.model == "XPS 15"


def test_different_device_starts_manual_collection(engine):
    engine.inject({"saved_devices": [SAVED_WORK_LAPTOP]})
    run(engine, ["software"])

    directive = engine.transition("No, different device")

    assert directive.state == FlowState.ASK_DEVICE_TYPE
    assert engine.context.device_selected_from_profile is False
    assert engine.context.device.manufacturer is None


def test_full_happy_path_with_save_and_guides(engine):
    engine.inject(DETECTED_PLATFORM)
    run(engine, ["software", "Lenovo", "ThinkPad X1", "VLC version 3.0.20", "Yes"])
    assert engine.state == FlowState.SEARCH_AND_EXTRACT
    assert engine.context.request.specific_version == "3.0.20"

    engine.inject({"outcomes": {"candidate_links": [CANDIDATE]}})
    directive = engine.transition("results:ok")
    assert directive.state == FlowState.SAFETY_CHECK_URL
    assert directive.awaits == ExternalAction.SAFETY_SCAN

    directive = engine.transition("risk:warned")
    assert directive.state == FlowState.QUEUE_DOWNLOAD_HISTORY

    directive = engine.transition("history:h-42")
    assert directive.state == FlowState.PRESENT_RESULT
    assert directive.ui.type == UIType.CARD
    assert "warning" in directive.message

    run(engine, ["Continue", "Save device", ""])
    assert engine.state == FlowState.SAVE_DEVICE_COMMIT
    assert engine.context.device.device_name == "Lenovo ThinkPad X1"
    assert engine.context.save_device_offer.user_choice == SaveChoice.SAVE

    run(engine, ["saved:dev-9", "Yes, show me how", "Continue", "Yes, show videos"])
    assert engine.state == FlowState.PRESENT_GUIDES
    assert engine.context.device_id == "dev-9"
    assert engine.context.outcomes.download_history_id == "h-42"

    assert engine.transition("Done").state == FlowState.END


# ── Caller-driven states ────────────────────────────────────────────────────

def test_search_waits_for_signal(searching_engine):
    directive = searching_engine.transition("hello?")
    assert directive.state == FlowState.SEARCH_AND_EXTRACT


@pytest.mark.parametrize("signal, expected", [
    ("results:empty", FlowState.NO_RESULTS),
    ("results:error", FlowState.ERROR),
    # No candidate links were injected
    ("results:ok", FlowState.NO_RESULTS),
])
def test_search_outcomes(searching_engine, signal, expected):
    assert searching_engine.transition(signal).state == expected


@pytest.mark.parametrize("risk, expected", [
    ("verified", FlowState.QUEUE_DOWNLOAD_HISTORY),
    ("warned", FlowState.QUEUE_DOWNLOAD_HISTORY),
    ("quarantined", FlowState.NO_RESULTS),
    ("blocked", FlowState.NO_RESULTS),
    ("error", FlowState.ERROR),
])
def test_safety_outcomes(searching_engine, risk, expected):
    searching_engine.inject({"outcomes": {"candidate_links": [CANDIDATE]}})
    searching_engine.transition("results:ok")

    assert searching_engine.transition(f"risk:{risk}").state == expected


def test_search_again_clears_outcomes(searching_engine):
    searching_engine.inject({"outcomes": {"candidate_links": [CANDIDATE]}})
    run(searching_engine, ["results:ok", "risk:blocked"])
    assert searching_engine.context.outcomes.risk_status == RiskStatus.BLOCKED

    directive = searching_engine.transition("Search again")

    assert directive.state == FlowState.SEARCH_AND_EXTRACT
    assert searching_engine.context.outcomes.risk_status is None
    assert searching_engine.context.request.driver_type == "Audio"


def test_error_is_terminal(searching_engine):
    searching_engine.transition("results:error")
    assert searching_engine.is_terminal

    directive = searching_engine.transition("anything")
    assert directive.state == FlowState.ERROR

    assert searching_engine.reset().state == FlowState.DETECT_INTENT


# ── Context handling ────────────────────────────────────────────────────────

def test_slots_survive_later_updates(engine):
    engine.inject(DETECTED_PLATFORM)
    run(engine, ["driver", "HP", "EliteBook 840"])

    assert engine.context.device.os_family.value == "Windows"
    assert engine.context.device.os_version == "11"
    assert engine.context.device.manufacturer == "HP"


def test_unrecognised_answer_reprompts(engine):
    run(engine, ["driver", "Laptop"])
    assert engine.state == FlowState.ASK_OS_FAMILY

    directive = engine.transition("purple")

    assert directive.state == FlowState.ASK_OS_FAMILY
    assert engine.context.device.os_family is None


def test_inject_does_not_change_state(engine):
    engine.inject({"saved_devices": [SAVED_WORK_LAPTOP]})
    assert engine.state == FlowState.DETECT_INTENT
    assert len(engine.context.saved_devices) == 1


def test_inject_rejects_unknown_fields(engine):
    with pytest.raises(ValueError):
        engine.inject({"favourite_colour": "blue"})
    with pytest.raises(ValueError):
        engine.inject({"device": {"colour": "blue"}})


def test_done_discards_context(result_engine):
    run(result_engine, ["Continue", "Not now", "No, thank you"])
    assert result_engine.state == FlowState.END

    directive = result_engine.transition("Done")

    assert directive.state == FlowState.END
    assert result_engine.context == SessionContext()


def test_new_request_keeps_device(result_engine):
    result_engine.inject({"saved_devices": [SAVED_WORK_LAPTOP]})
    run(result_engine, ["Continue", "Not now", "No, thank you"])

    directive = result_engine.transition("New request")

    assert directive.state == FlowState.DETECT_INTENT
    ctx = result_engine.context
    assert ctx.intent is None
    assert ctx.request.driver_type is None
    assert ctx.confirmation.confirmed is False
    assert ctx.device.manufacturer == "HP"
    assert len(ctx.saved_devices) == 1


def test_new_request_without_device_retention(result_engine, monkeypatch):
    monkeypatch.setattr(settings, "RETAIN_DEVICE_ON_NEW_REQUEST", False)
    run(result_engine, ["Continue", "Not now", "No, thank you", "New request"])

    assert result_engine.context.device.manufacturer is None


def test_reset_is_idempotent(engine):
    engine.inject(DETECTED_PLATFORM)
    run(engine, ["driver", "HP"])

    first = engine.reset()
    second = engine.reset()

    assert first == second
    assert engine.state == FlowState.DETECT_INTENT
    assert engine.context == SessionContext()
    assert engine.history == [FlowState.DETECT_INTENT]


def test_reset_engine_behaves_like_a_new_one(searching_engine):
    searching_engine.reset()
    fresh = FlowEngine()

    for target in (searching_engine, fresh):
        target.inject(DETECTED_PLATFORM)
    for raw in ["x", "driver", "Lenovo", "ThinkPad T14", "PF3ABC", "Audio", "Yes"]:
        assert searching_engine.transition(raw) == fresh.transition(raw)

    assert searching_engine.history == fresh.history
    assert searching_engine.snapshot() == fresh.snapshot()


def test_history_keeps_only_newest_entries(engine):
    for _ in range(500):
        engine.transition("x")

    assert engine.state == FlowState.DETECT_INTENT
    assert len(engine.history) == settings.MAX_HISTORY_ITEMS
    assert len(engine.snapshot()["history"]) == settings.MAX_HISTORY_ITEMS


def test_restored_history_is_capped(monkeypatch):
    monkeypatch.setattr(settings, "MAX_HISTORY_ITEMS", 3)
    snapshot = {
        "state": "detect_intent",
        "context": {},
        "history": ["detect_intent"] * 10,
    }

    restored = FlowEngine.restore(snapshot)
    restored.transition("x")

    assert len(restored.history) == 3


def test_rendered_ui_is_not_shared_between_engines(engine):
    engine.render().ui.options.append("Injected")
    engine.transition("x").ui.help_topics.append("Injected")

    ui = FlowEngine().render().ui

    assert ui.options == ["Driver", "Software", "Game"]
    assert ui.help_topics == []


# ── Serial rule ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize("intent, manufacturer, asks_serial", [
    ("driver", "HP", True),
    ("driver", "dell", True),
    ("driver", "Lenovo", True),
    ("driver", "Apple", False),
    ("software", "HP", False),
    ("game", "Dell", False),
])
def test_serial_only_for_driver_portals(engine, intent, manufacturer, asks_serial):
    engine.inject(DETECTED_PLATFORM)
    run(engine, [intent, manufacturer, "Model 1"])

    expected = FlowState.ASK_SERIAL if asks_serial else FlowState.ASK_REQUEST_DETAILS
    assert engine.state == expected


def test_serial_list_is_configurable(engine, monkeypatch):
    monkeypatch.setattr(settings, "SERIAL_REQUIRED_MANUFACTURERS", ["Acer"])
    engine.inject(DETECTED_PLATFORM)
    run(engine, ["driver", "Acer", "Swift 3"])

    assert engine.state == FlowState.ASK_SERIAL


def test_serial_is_recorded(engine):
    engine.inject(DETECTED_PLATFORM)
    run(engine, ["driver", "Dell", "XPS 15", "5CD1234XYZ", "Wi-Fi"])

    assert engine.context.device.serial == "5CD1234XYZ"
    assert "serial 5CD1234XYZ" in engine.render().message


def test_known_serial_is_not_asked_again(result_engine):
    result_engine.inject({"device": {"serial": "5CD1234XYZ"}})
    run(result_engine, ["Continue", "Not now", "No, thank you", "New request"])

    directive = result_engine.transition("driver")

    assert directive.state == FlowState.ASK_REQUEST_DETAILS
    assert FlowState.ASK_SERIAL not in result_engine.history[-2:]
    assert result_engine.context.device.serial == "5CD1234XYZ"


def test_retained_device_without_serial_is_asked_for_it(result_engine):
    run(result_engine, ["Continue", "Not now", "No, thank you", "New request"])

    assert result_engine.transition("driver").state == FlowState.ASK_SERIAL


# ── Save-device gating ──────────────────────────────────────────────────────

@pytest.mark.parametrize("manufacturer", [None, "HP"])
@pytest.mark.parametrize("model", [None, "EliteBook 840"])
@pytest.mark.parametrize("os_family", [None, "Windows"])
@pytest.mark.parametrize("from_profile", [False, True])
def test_save_offer_gating(confirmed_context, manufacturer, model, os_family, from_profile):
    confirmed_context["device"] = {
        "manufacturer": manufacturer, "model": model, "os_family": os_family,
    }
    confirmed_context["device_selected_from_profile"] = from_profile
    confirmed_context["device_id"] = "dev-1" if from_profile else None
    confirmed_context["outcomes"] = {"selected_link": CANDIDATE, "risk_status": "verified"}
    engine = FlowEngine(
        state=FlowState.PRESENT_RESULT,
        context=SessionContext.model_validate(confirmed_context),
    )

    directive = engine.transition("Continue")

    complete = bool(manufacturer and model and os_family)
    offered = complete and not from_profile
    assert (directive.state == FlowState.OFFER_SAVE_DEVICE) == offered
    assert engine.context.save_device_offer.eligible is offered
    if not offered:
        assert directive.state == FlowState.OFFER_INSTALL_HELP


# ── Snapshot / restore ──────────────────────────────────────────────────────

def test_snapshot_round_trip(engine):
    engine.inject(DETECTED_PLATFORM)
    run(engine, ["driver", "HP", "EliteBook 840"])

    restored = FlowEngine.restore(engine.snapshot())

    assert restored.state == engine.state
    assert restored.context == engine.context
    assert restored.history == engine.history

    run(engine, ["I don't know", "Audio"])
    run(restored, ["I don't know", "Audio"])
    assert restored.render() == engine.render()


@pytest.mark.parametrize("snapshot", [
    {},
    {"state": "ask_model"},
    {"context": {}},
    {"state": "teleport", "context": {}},
    {"state": "ask_model", "context": {"intent": "driver", "mystery": 1}},
    # Past the device questions with no device identity
    {"state": "ask_request_details", "context": {"intent": "driver"}},
    {"state": "confirm_summary", "context": {"intent": "driver"}},
    # Device known but nothing requested yet
    {"state": "confirm_summary", "context": {
        "intent": "driver",
        "device": {"manufacturer": "HP", "model": "EliteBook 840"},
    }},
])
def test_restore_rejects_partial_snapshots(snapshot):
    with pytest.raises(SessionRestoreError):
        FlowEngine.restore(snapshot)


def test_restore_rejects_context_missing_required_slots():
    # Searching requires a confirmed request
    snapshot = {"state": "search_and_extract", "context": {"intent": "driver"}}

    with pytest.raises(SessionRestoreError) as excinfo:
        FlowEngine.restore(snapshot)

    assert any(e.field == "confirmation.confirmed" for e in excinfo.value.errors)


def test_restore_accepts_profile_device_at_confirmation():
    snapshot = {"state": "confirm_summary", "context": {
        "intent": "driver",
        "device_selected_from_profile": True,
        "device_id": "dev-1",
        "request": {"driver_type": "Audio"},
    }}

    restored = FlowEngine.restore(snapshot)

    assert restored.state == FlowState.CONFIRM_SUMMARY


def test_unknown_state_raises():
    engine = FlowEngine()
    engine.state = "teleport"

    with pytest.raises(UnknownFlowStateError):
        engine.transition("hi")
