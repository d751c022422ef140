"""
State configuration table for the guided download flow.

Each FlowState maps to a StateConfig holding up to four pure functions:
how to word the prompt, which input affordance to show, how to fold the
user's answer into the context, and where to go next. The table is data;
FlowEngine is the only thing that executes it.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from models.schemas import (
    FlowState,
    SessionContext,
    Intent,
    RiskStatus,
    SaveChoice,
    UIDescriptor,
    UIType,
    ExternalAction,
    DeviceInfo,
    Outcomes,
)
from core.conversation import message_templates as templates
from core.conversation.context.manager import ContextManager
from core.conversation.orchestration.transitions import TransitionValidator
from core.conversation.understanding import intent_detector, entity_extractor


MessageFn = Callable[[SessionContext], str]
UIFn = Callable[[SessionContext], UIDescriptor]
ProcessFn = Callable[[SessionContext, str], Dict[str, Any]]
NextStateFn = Callable[[SessionContext, str], FlowState]


class UnknownFlowStateError(ValueError):
    """Raised when a state id has no entry in the table"""


@dataclass(frozen=True)
class StateConfig:
    """How one state renders and transitions"""
    state: FlowState
    message: Optional[MessageFn] = None
    ui: Optional[UIFn] = None
    process_input: Optional[ProcessFn] = None
    next_state: Optional[NextStateFn] = None
    # External work the caller performs while the flow waits here
    awaits: Optional[ExternalAction] = None
    # Resolved by the engine straight away, without user input
    auto: bool = False

    def render_message(self, ctx: SessionContext) -> Optional[str]:
        return self.message(ctx) if self.message else None

    def render_ui(self, ctx: SessionContext) -> UIDescriptor:
        return self.ui(ctx) if self.ui else UIDescriptor()


def _ui(ui_type: UIType, options: Optional[List[str]] = None,
        help_topics: Optional[List[str]] = None,
        component: Optional[str] = None) -> UIFn:
    """UI descriptor with fixed content, built fresh for every render"""
    return lambda ctx: UIDescriptor(
        type=ui_type,
        options=list(options or []),
        help_topics=list(help_topics or []),
        component=component,
    )


def _text(raw: str) -> Optional[str]:
    cleaned = (raw or "").strip()
    return cleaned or None


def _request_from_text(raw: str) -> Dict[str, Any]:
    """Request slots from a free-text software or game query"""
    preference, version = entity_extractor.extract_version(raw)
    return {
        "query_name": raw.strip(),
        "platform": entity_extractor.extract_platform(raw),
        "version_preference": preference,
        "specific_version": version,
    }


# ── Intent ──────────────────────────────────────────────────────────────────

def _detect_intent_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    detected = intent_detector.detect(raw)
    if detected.intent is None:
        return {}
    updates: Dict[str, Any] = {"intent": detected.intent}
    if detected.query_name:
        updates["request"] = _request_from_text(detected.query_name)
    return updates


def _detect_intent_next(ctx: SessionContext, raw: str) -> FlowState:
    if ctx.intent:
        return FlowState.CHECK_SAVED_DEVICES
    return FlowState.DETECT_INTENT


# ── Saved devices ───────────────────────────────────────────────────────────

def _check_saved_devices_next(ctx: SessionContext, raw: str) -> FlowState:
    if ctx.saved_devices:
        return FlowState.SELECT_SAVED_DEVICE
    return TransitionValidator.next_device_step(ctx)


def _select_device_ui(ctx: SessionContext) -> UIDescriptor:
    options = [d.name for d in ctx.saved_devices] or [templates.USE_SAVED_DEVICE_OPTION]
    return UIDescriptor(
        type=UIType.SELECT,
        options=options + [templates.DIFFERENT_DEVICE_OPTION],
        help_topics=["What is a saved device?"],
    )


def _select_device_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    saved = None
    if not entity_extractor.declines_saved_device(raw):
        saved = entity_extractor.match_saved_device(raw, ctx.saved_devices)

    if saved is None:
        # Manual collection starts from an empty device record
        return {
            "device_selected_from_profile": False,
            "device_id": None,
            "device": DeviceInfo().model_dump(),
        }

    device = {**DeviceInfo().model_dump(), **ContextManager.device_from_saved(saved)}
    return {
        "device_selected_from_profile": True,
        "device_id": saved.id,
        "device": device,
    }


def _select_device_next(ctx: SessionContext, raw: str) -> FlowState:
    if ctx.device_selected_from_profile:
        return FlowState.ASK_REQUEST_DETAILS
    return FlowState.ASK_DEVICE_TYPE


# ── Device identification ───────────────────────────────────────────────────

def _device_type_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    device_type = entity_extractor.normalize_device_type(raw)
    return {"device": {"device_type": device_type}} if device_type else {}


def _os_family_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    family = entity_extractor.normalize_os_family(raw)
    return {"device": {"os_family": family}} if family else {}


def _os_version_message(ctx: SessionContext) -> str:
    family = ctx.device.os_family.value if ctx.device.os_family else "your operating system"
    return f"What version of {family} is it? (e.g. 11, 10, Sequoia)"


def _os_version_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    version = _text(raw)
    if not version:
        return {}
    device: Dict[str, Any] = {"os_version": version}
    arch = entity_extractor.extract_arch(version)
    if arch:
        device["arch"] = arch
    return {"device": device}


def _manufacturer_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    manufacturer = _text(raw)
    return {"device": {"manufacturer": manufacturer}} if manufacturer else {}


def _model_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    model = _text(raw)
    return {"device": {"model": model}} if model else {}


def _device_step_next(ctx: SessionContext, raw: str) -> FlowState:
    return TransitionValidator.next_device_step(ctx)


def _serial_ui(ctx: SessionContext) -> UIDescriptor:
    manufacturer = ctx.device.manufacturer or "your device"
    return UIDescriptor(
        type=UIType.TEXT,
        options=[templates.SERIAL_DECLINE_OPTION],
        help_topics=[f"Find serial on {manufacturer}"],
    )


def _serial_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    if entity_extractor.is_serial_declined(raw):
        return {"device": {"serial": None}}
    return {"device": {"serial": raw.strip()}}


# ── Request and confirmation ────────────────────────────────────────────────

def _request_ui(ctx: SessionContext) -> UIDescriptor:
    if ctx.intent == Intent.DRIVER:
        return UIDescriptor(type=UIType.SELECT, options=list(templates.DRIVER_CATEGORY_OPTIONS))
    return UIDescriptor(type=UIType.TEXT)


def _request_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    answer = _text(raw)
    if not answer:
        return {}
    if ctx.intent == Intent.DRIVER:
        return {"request": {"driver_type": answer}}
    return {"request": _request_from_text(answer)}


def _request_next(ctx: SessionContext, raw: str) -> FlowState:
    if ctx.request.driver_type or ctx.request.query_name:
        return FlowState.CONFIRM_SUMMARY
    return FlowState.ASK_REQUEST_DETAILS


def _confirm_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    confirmation: Dict[str, Any] = {"summary": templates.confirmation_summary(ctx)}
    if entity_extractor.is_affirmative(raw):
        confirmation["confirmed"] = True
    return {"confirmation": confirmation}


def _confirm_next(ctx: SessionContext, raw: str) -> FlowState:
    if entity_extractor.is_affirmative(raw):
        return FlowState.SEARCH_AND_EXTRACT
    # Edit restarts the whole flow; see DESIGN.md
    return FlowState.DETECT_INTENT


# ── Search, safety and history (caller signals) ─────────────────────────────

def _search_message(ctx: SessionContext) -> str:
    target = ctx.request.driver_type or ctx.request.query_name or "your download"
    return f"Searching official sources for {target}..."


def _search_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    signal = entity_extractor.extract_signal(raw, "results")
    if signal == "ok" and ctx.outcomes.candidate_links:
        return {"outcomes": {"selected_link": ctx.outcomes.candidate_links[0]}}
    return {}


def _search_next(ctx: SessionContext, raw: str) -> FlowState:
    signal = entity_extractor.extract_signal(raw, "results")
    if signal == "ok":
        if ctx.outcomes.selected_link:
            return FlowState.SAFETY_CHECK_URL
        return FlowState.NO_RESULTS
    if signal == "empty":
        return FlowState.NO_RESULTS
    if signal == "error":
        return FlowState.ERROR
    return FlowState.SEARCH_AND_EXTRACT


def _no_results_message(ctx: SessionContext) -> str:
    if ctx.outcomes.risk_status in (RiskStatus.BLOCKED, RiskStatus.QUARANTINED):
        return ("The download I found did not pass the safety check, so I won't share it. "
                "Want me to search again?")
    return "I couldn't find a safe download matching your details. Want me to search again?"


def _wants_search_again(raw: str) -> bool:
    return (raw or "").strip().lower().startswith("search again")


def _no_results_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    if _wants_search_again(raw):
        return {"outcomes": Outcomes().model_dump()}
    return {}


def _no_results_next(ctx: SessionContext, raw: str) -> FlowState:
    if _wants_search_again(raw):
        return FlowState.SEARCH_AND_EXTRACT
    return FlowState.END


def _safety_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    signal = entity_extractor.extract_signal(raw, "risk")
    if signal and signal.lower() in {status.value for status in RiskStatus}:
        return {"outcomes": {"risk_status": signal.lower()}}
    return {}


def _safety_next(ctx: SessionContext, raw: str) -> FlowState:
    signal = entity_extractor.extract_signal(raw, "risk")
    if signal and signal.lower() == "error":
        return FlowState.ERROR
    status = ctx.outcomes.risk_status
    if status in (RiskStatus.VERIFIED, RiskStatus.WARNED):
        return FlowState.QUEUE_DOWNLOAD_HISTORY
    if status in (RiskStatus.QUARANTINED, RiskStatus.BLOCKED):
        return FlowState.NO_RESULTS
    return FlowState.SAFETY_CHECK_URL


def _history_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    history_id = entity_extractor.extract_signal(raw, "history")
    return {"outcomes": {"download_history_id": history_id}} if history_id else {}


# ── Result and follow-up offers ─────────────────────────────────────────────

def _present_result_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    return {"save_device_offer": {"eligible": TransitionValidator.can_offer_save_device(ctx)}}


def _present_result_next(ctx: SessionContext, raw: str) -> FlowState:
    if TransitionValidator.can_offer_save_device(ctx):
        return FlowState.OFFER_SAVE_DEVICE
    return FlowState.OFFER_INSTALL_HELP


def _wants_save(raw: str) -> bool:
    return (raw or "").strip().lower().startswith("save")


def _offer_save_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    save = _wants_save(raw)
    return {"save_device_offer": {
        "user_choice": SaveChoice.SAVE if save else SaveChoice.NOT_NOW,
        "needs_device_name": save,
    }}


def _offer_save_next(ctx: SessionContext, raw: str) -> FlowState:
    if _wants_save(raw):
        return FlowState.SAVE_DEVICE_NAME
    return FlowState.OFFER_INSTALL_HELP


def _device_name_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    name = _text(raw) or f"{ctx.device.manufacturer} {ctx.device.model}"
    return {
        "device": {"device_name": name},
        "save_device_offer": {"needs_device_name": False},
    }


def _save_commit_message(ctx: SessionContext) -> str:
    return f"Saving {templates.device_label(ctx)} to your profile..."


def _save_commit_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    device_id = entity_extractor.extract_signal(raw, "saved")
    return {"device_id": device_id} if device_id else {}


def _install_help_input(ctx: SessionContext, raw: str) -> Dict[str, Any]:
    return {"install_help": {
        "offered": True,
        "accepted": entity_extractor.is_affirmative(raw),
    }}


def _install_help_next(ctx: SessionContext, raw: str) -> FlowState:
    if ctx.install_help.accepted:
        return FlowState.INSTALL_GUIDE
    return FlowState.END


def _video_guides_next(ctx: SessionContext, raw: str) -> FlowState:
    if entity_extractor.is_affirmative(raw):
        return FlowState.PRESENT_GUIDES
    return FlowState.END


def _end_next(ctx: SessionContext, raw: str) -> FlowState:
    if (raw or "").strip().lower() == "new request":
        return FlowState.DETECT_INTENT
    return FlowState.END


def _goto(state: FlowState) -> NextStateFn:
    return lambda ctx, raw: state


STATE_TABLE: Dict[FlowState, StateConfig] = {cfg.state: cfg for cfg in [
    StateConfig(
        state=FlowState.DETECT_INTENT,
        message=lambda ctx: "Do you need a driver, a software app, or a game?",
        ui=_ui(UIType.BUTTONS, templates.INTENT_OPTIONS),
        process_input=_detect_intent_input,
        next_state=_detect_intent_next,
    ),
    StateConfig(
        state=FlowState.CHECK_SAVED_DEVICES,
        next_state=_check_saved_devices_next,
        auto=True,
    ),
    StateConfig(
        state=FlowState.SELECT_SAVED_DEVICE,
        message=lambda ctx: "Is this for one of your saved devices?",
        ui=_select_device_ui,
        process_input=_select_device_input,
        next_state=_select_device_next,
    ),
    StateConfig(
        state=FlowState.ASK_DEVICE_TYPE,
        message=lambda ctx: "What device are you using?",
        ui=_ui(UIType.BUTTONS, templates.DEVICE_TYPE_OPTIONS, ["I'm not sure"]),
        process_input=_device_type_input,
        next_state=_device_step_next,
    ),
    StateConfig(
        state=FlowState.ASK_OS_FAMILY,
        message=lambda ctx: "Which operating system is on the device?",
        ui=_ui(UIType.SELECT, templates.OS_FAMILY_OPTIONS,
               ["Find OS on Windows", "Find OS on Mac"]),
        process_input=_os_family_input,
        next_state=_device_step_next,
    ),
    StateConfig(
        state=FlowState.ASK_OS_VERSION,
        message=_os_version_message,
        ui=_ui(UIType.TEXT, help_topics=["Find Windows version", "Find macOS version"]),
        process_input=_os_version_input,
        next_state=_device_step_next,
    ),
    StateConfig(
        state=FlowState.ASK_MANUFACTURER,
        message=lambda ctx: "What is the device manufacturer?",
        ui=_ui(UIType.SELECT, templates.MANUFACTURER_OPTIONS, ["Where to find manufacturer"]),
        process_input=_manufacturer_input,
        next_state=_device_step_next,
    ),
    StateConfig(
        state=FlowState.ASK_MODEL,
        message=lambda ctx: "What is the model name? (e.g. XPS 15, Pavilion 15)",
        ui=_ui(UIType.TEXT, help_topics=["Find model on Windows",
                                         "Check the label under the laptop"]),
        process_input=_model_input,
        next_state=_device_step_next,
    ),
    StateConfig(
        state=FlowState.ASK_SERIAL,
        message=lambda ctx: ("Do you know the serial number or service tag? "
                             "It helps find the exact driver."),
        ui=_serial_ui,
        process_input=_serial_input,
        next_state=_goto(FlowState.ASK_REQUEST_DETAILS),
    ),
    StateConfig(
        state=FlowState.ASK_REQUEST_DETAILS,
        message=templates.request_prompt,
        ui=_request_ui,
        process_input=_request_input,
        next_state=_request_next,
    ),
    StateConfig(
        state=FlowState.CONFIRM_SUMMARY,
        message=templates.confirmation_summary,
        ui=_ui(UIType.BUTTONS, templates.CONFIRM_OPTIONS),
        process_input=_confirm_input,
        next_state=_confirm_next,
    ),
    StateConfig(
        state=FlowState.SEARCH_AND_EXTRACT,
        message=_search_message,
        process_input=_search_input,
        next_state=_search_next,
        awaits=ExternalAction.SEARCH,
    ),
    StateConfig(
        state=FlowState.NO_RESULTS,
        message=_no_results_message,
        ui=_ui(UIType.BUTTONS, templates.NO_RESULTS_OPTIONS),
        process_input=_no_results_input,
        next_state=_no_results_next,
    ),
    StateConfig(
        state=FlowState.SAFETY_CHECK_URL,
        message=lambda ctx: "Checking the download link for malware and phishing...",
        process_input=_safety_input,
        next_state=_safety_next,
        awaits=ExternalAction.SAFETY_SCAN,
    ),
    StateConfig(
        state=FlowState.QUEUE_DOWNLOAD_HISTORY,
        process_input=_history_input,
        next_state=_goto(FlowState.PRESENT_RESULT),
        awaits=ExternalAction.RECORD_DOWNLOAD,
    ),
    StateConfig(
        state=FlowState.PRESENT_RESULT,
        message=templates.result_message,
        ui=_ui(UIType.CARD, ["Continue"], component="ResultCard"),
        process_input=_present_result_input,
        next_state=_present_result_next,
    ),
    StateConfig(
        state=FlowState.OFFER_SAVE_DEVICE,
        message=lambda ctx: "Save this device to your profile for faster searches next time?",
        ui=_ui(UIType.BUTTONS, templates.SAVE_DEVICE_OPTIONS),
        process_input=_offer_save_input,
        next_state=_offer_save_next,
    ),
    StateConfig(
        state=FlowState.SAVE_DEVICE_NAME,
        message=lambda ctx: "What name do you want to call this device? (e.g. Work Laptop)",
        ui=_ui(UIType.TEXT),
        process_input=_device_name_input,
        next_state=_goto(FlowState.SAVE_DEVICE_COMMIT),
    ),
    StateConfig(
        state=FlowState.SAVE_DEVICE_COMMIT,
        message=_save_commit_message,
        process_input=_save_commit_input,
        next_state=_goto(FlowState.OFFER_INSTALL_HELP),
        awaits=ExternalAction.SAVE_DEVICE,
    ),
    StateConfig(
        state=FlowState.OFFER_INSTALL_HELP,
        message=lambda ctx: "Need help installing it?",
        ui=_ui(UIType.BUTTONS, templates.INSTALL_HELP_OPTIONS),
        process_input=_install_help_input,
        next_state=_install_help_next,
    ),
    StateConfig(
        state=FlowState.INSTALL_GUIDE,
        message=templates.install_guide,
        ui=_ui(UIType.BUTTONS, ["Continue"]),
        next_state=_goto(FlowState.OFFER_VIDEO_GUIDES),
    ),
    StateConfig(
        state=FlowState.OFFER_VIDEO_GUIDES,
        message=lambda ctx: "Would you like video walkthroughs as well?",
        ui=_ui(UIType.BUTTONS, templates.VIDEO_GUIDE_OPTIONS),
        next_state=_video_guides_next,
    ),
    StateConfig(
        state=FlowState.PRESENT_GUIDES,
        message=lambda ctx: "Here are some video guides for installing it.",
        ui=_ui(UIType.CARD, ["Done"], component="VideoGuides"),
        next_state=_goto(FlowState.END),
        awaits=ExternalAction.VIDEO_GUIDES,
    ),
    StateConfig(
        state=FlowState.END,
        message=lambda ctx: "Anything else you want to install or fix?",
        ui=_ui(UIType.BUTTONS, templates.END_OPTIONS),
        next_state=_end_next,
    ),
    StateConfig(
        state=FlowState.ERROR,
        message=lambda ctx: ("Something went wrong while finding your download. "
                             "Please start over and try again."),
    ),
]}

_missing = set(FlowState) - set(STATE_TABLE)
if _missing:
    raise RuntimeError(f"State table has no entry for: {sorted(s.value for s in _missing)}")


def get_state_config(state: FlowState) -> StateConfig:
    """Look up a state's configuration; unknown ids are a programming error"""
    try:
        return STATE_TABLE[FlowState(state)]
    except (KeyError, ValueError):
        raise UnknownFlowStateError(f"No state configuration for {state!r}") from None
