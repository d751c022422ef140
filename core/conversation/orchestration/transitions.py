"""
State transition rules for the guided flow.

This module holds the branch predicates the state table consults, the
context policy applied on specific transitions, and human-readable reasons
used when logging transitions.
"""

from typing import Dict, Optional, List, Tuple
from enum import Enum
import logging

from config import settings
from models.schemas import FlowState, SessionContext, Intent

logger = logging.getLogger(__name__)


# Device identification order; each entry is (state, DeviceInfo field)
DEVICE_SLOTS: List[Tuple[FlowState, str]] = [
    (FlowState.ASK_DEVICE_TYPE, "device_type"),
    (FlowState.ASK_OS_FAMILY, "os_family"),
    (FlowState.ASK_OS_VERSION, "os_version"),
    (FlowState.ASK_MANUFACTURER, "manufacturer"),
    (FlowState.ASK_MODEL, "model"),
]


class TransitionValidator:
    """Branch predicates over the session context"""

    @staticmethod
    def needs_serial_for_driver_portal(ctx: SessionContext) -> bool:
        """Driver requests for manufacturers whose portals look up by serial"""
        if ctx.intent != Intent.DRIVER:
            return False
        return settings.requires_serial(ctx.device.manufacturer or "")

    @staticmethod
    def has_enough_device_to_save(ctx: SessionContext) -> bool:
        """A device may only be saved with a complete identity"""
        device = ctx.device
        return bool(device.manufacturer and device.model and device.os_family)

    @classmethod
    def can_offer_save_device(cls, ctx: SessionContext) -> bool:
        return not ctx.device_selected_from_profile and cls.has_enough_device_to_save(ctx)

    @classmethod
    def after_model_step(cls, ctx: SessionContext) -> FlowState:
        # A serial kept from an earlier request is not asked for again
        if cls.needs_serial_for_driver_portal(ctx) and not ctx.device.serial:
            return FlowState.ASK_SERIAL
        return FlowState.ASK_REQUEST_DETAILS

    @classmethod
    def next_device_step(cls, ctx: SessionContext) -> FlowState:
        """
        First device slot that is still unknown.

        Slots pre-filled by the caller (for example an OS detected from the
        browser) are skipped; once all are known the flow moves on to the
        optional serial question.
        """
        for state, field in DEVICE_SLOTS:
            if not getattr(ctx.device, field):
                return state
        return cls.after_model_step(ctx)


class ContextPolicy(str, Enum):
    """What happens to the context when a transition is taken"""
    PRESERVE = "preserve"
    RESET = "reset"
    NEW_REQUEST = "new_request"


class TransitionRules:
    """Defines specific rules for state transitions"""

    CONTEXT_POLICIES: Dict[Tuple[FlowState, FlowState], ContextPolicy] = {
        # "Edit" at the review step starts over with an empty context
        (FlowState.CONFIRM_SUMMARY, FlowState.DETECT_INTENT): ContextPolicy.RESET,
        (FlowState.END, FlowState.DETECT_INTENT): ContextPolicy.NEW_REQUEST,
        # User declined to continue
        (FlowState.END, FlowState.END): ContextPolicy.RESET,
    }

    @classmethod
    def get_context_policy(cls, from_state: FlowState, to_state: FlowState) -> ContextPolicy:
        return cls.CONTEXT_POLICIES.get((from_state, to_state), ContextPolicy.PRESERVE)

    @classmethod
    def get_transition_reason(cls, from_state: FlowState,
                              to_state: FlowState) -> str:
        """Generate a human-readable reason for state transition"""
        reasons = {
            (FlowState.DETECT_INTENT, FlowState.DETECT_INTENT):
                "Intent unclear, asking again",
            (FlowState.DETECT_INTENT, FlowState.CHECK_SAVED_DEVICES):
                "Intent detected",
            (FlowState.CHECK_SAVED_DEVICES, FlowState.SELECT_SAVED_DEVICE):
                "User has saved devices",
            (FlowState.SELECT_SAVED_DEVICE, FlowState.ASK_DEVICE_TYPE):
                "User wants to describe a different device",
            (FlowState.SELECT_SAVED_DEVICE, FlowState.ASK_REQUEST_DETAILS):
                "Saved device selected",
            (FlowState.ASK_MODEL, FlowState.ASK_SERIAL):
                "Driver portal needs a serial number",
            (FlowState.CONFIRM_SUMMARY, FlowState.SEARCH_AND_EXTRACT):
                "Request confirmed, starting search",
            (FlowState.CONFIRM_SUMMARY, FlowState.DETECT_INTENT):
                "User chose to edit, restarting flow",
            (FlowState.SEARCH_AND_EXTRACT, FlowState.NO_RESULTS):
                "Search returned no candidates",
            (FlowState.SEARCH_AND_EXTRACT, FlowState.ERROR):
                "Search backend failed",
            (FlowState.SAFETY_CHECK_URL, FlowState.NO_RESULTS):
                "Candidate link failed the safety check",
            (FlowState.SAFETY_CHECK_URL, FlowState.ERROR):
                "Safety scan failed",
            (FlowState.PRESENT_RESULT, FlowState.OFFER_SAVE_DEVICE):
                "Device identity complete, offering to save it",
            (FlowState.OFFER_INSTALL_HELP, FlowState.INSTALL_GUIDE):
                "User wants install help",
            (FlowState.END, FlowState.DETECT_INTENT):
                "Starting a new request",
            (FlowState.END, FlowState.END):
                "User finished, discarding context",
        }

        key = (from_state, to_state)
        if key in reasons:
            return reasons[key]
        if from_state == to_state:
            return f"Waiting in {from_state.value}"
        return f"Advancing from {from_state.value} to {to_state.value}"

    @classmethod
    def get_abandonment_message(cls, from_state: Optional[FlowState]) -> str:
        """Message shown when the flow is reset from a given state"""
        if from_state in (FlowState.SEARCH_AND_EXTRACT, FlowState.SAFETY_CHECK_URL,
                          FlowState.QUEUE_DOWNLOAD_HISTORY, FlowState.ERROR):
            return "No problem, let's start again. Your search has been cancelled."
        return "No problem, let's start again."
