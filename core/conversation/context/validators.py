"""
Context validation utilities.

This module checks that a (state, context) pair is consistent with the
guided flow's invariants. It is used when a session is restored from
storage, where a partial or stale snapshot must be rejected instead of
resuming mid-flow with missing slots.
"""

from typing import Any, Dict, List, Optional, Set

from config import settings
from models.schemas import FlowState, SessionContext, Intent


class ValidationError:
    """Represents a context validation error"""

    def __init__(self, field: str, message: str, severity: str = "error"):
        self.field = field
        self.message = message
        self.severity = severity  # "error", "warning"

    def __repr__(self):
        return f"ValidationError({self.field}: {self.message})"


_INTENT = {"intent"}
_SAVEABLE = {"device.manufacturer", "device.model", "device.os_family"}
_CONFIRMED = _INTENT | {"confirmation.confirmed"}
_LINK_SELECTED = _CONFIRMED | {"outcomes.selected_link"}
_LINK_SCANNED = _LINK_SELECTED | {"outcomes.risk_status"}


class ContextValidator:
    """Validates session context for consistency and completeness"""

    # Slots that must be populated before a state may be active
    REQUIRED_FIELDS: Dict[FlowState, Set[str]] = {
        FlowState.CHECK_SAVED_DEVICES: _INTENT,
        FlowState.SELECT_SAVED_DEVICE: _INTENT,
        FlowState.ASK_DEVICE_TYPE: _INTENT,
        FlowState.ASK_OS_FAMILY: _INTENT,
        FlowState.ASK_OS_VERSION: _INTENT,
        FlowState.ASK_MANUFACTURER: _INTENT,
        FlowState.ASK_MODEL: _INTENT,
        FlowState.ASK_SERIAL: _INTENT | {"device.manufacturer", "device.model"},
        FlowState.ASK_REQUEST_DETAILS: _INTENT,
        FlowState.CONFIRM_SUMMARY: _INTENT,
        FlowState.SEARCH_AND_EXTRACT: _CONFIRMED,
        FlowState.NO_RESULTS: _CONFIRMED,
        FlowState.SAFETY_CHECK_URL: _LINK_SELECTED,
        FlowState.QUEUE_DOWNLOAD_HISTORY: _LINK_SCANNED,
        FlowState.PRESENT_RESULT: _LINK_SCANNED,
        FlowState.OFFER_SAVE_DEVICE: _CONFIRMED | _SAVEABLE,
        FlowState.SAVE_DEVICE_NAME: _CONFIRMED | _SAVEABLE,
        FlowState.SAVE_DEVICE_COMMIT: _CONFIRMED | _SAVEABLE,
        FlowState.OFFER_INSTALL_HELP: _CONFIRMED,
        FlowState.INSTALL_GUIDE: _CONFIRMED,
        FlowState.OFFER_VIDEO_GUIDES: _CONFIRMED,
        FlowState.PRESENT_GUIDES: _CONFIRMED,
    }

    # From here on the device must be identified, by slots or by a saved profile
    DEVICE_IDENTIFIED_STATES: Set[FlowState] = {
        s for s in REQUIRED_FIELDS if s not in {
            FlowState.CHECK_SAVED_DEVICES,
            FlowState.SELECT_SAVED_DEVICE,
            FlowState.ASK_DEVICE_TYPE,
            FlowState.ASK_OS_FAMILY,
            FlowState.ASK_OS_VERSION,
            FlowState.ASK_MANUFACTURER,
            FlowState.ASK_MODEL,
            FlowState.ASK_SERIAL,
        }
    }

    # From here on the request must be known
    REQUEST_CAPTURED_STATES: Set[FlowState] = DEVICE_IDENTIFIED_STATES - {
        FlowState.ASK_REQUEST_DETAILS,
    }

    @classmethod
    def validate_context(cls, context: SessionContext,
                         state: Optional[FlowState] = None) -> List[ValidationError]:
        """
        Validate context data.

        Args:
            context: Context to validate
            state: State the context is paired with

        Returns:
            List of validation errors
        """
        errors = []

        if state:
            errors.extend(cls._validate_state_requirements(context, state))

        errors.extend(cls._validate_data_consistency(context, state))

        return errors

    @classmethod
    def is_valid(cls, context: SessionContext, state: Optional[FlowState] = None) -> bool:
        """True when there are no error-severity problems"""
        return not any(e.severity == "error" for e in cls.validate_context(context, state))

    @classmethod
    def _validate_state_requirements(cls, context: SessionContext,
                                     state: FlowState) -> List[ValidationError]:
        """Validate state-specific requirements"""
        errors = []

        required = cls.REQUIRED_FIELDS.get(state, set())
        for field in sorted(required):
            if not cls._lookup(context, field):
                errors.append(ValidationError(
                    field,
                    f"{field} is required for state {state.value}"
                ))

        if state in cls.DEVICE_IDENTIFIED_STATES and not cls._device_identified(context):
            errors.append(ValidationError(
                "device",
                f"device.manufacturer and device.model (or a saved device_id) "
                f"are required for state {state.value}"
            ))

        if state in cls.REQUEST_CAPTURED_STATES and not (
                context.request.driver_type or context.request.query_name):
            errors.append(ValidationError(
                "request",
                f"request.driver_type or request.query_name is required for state {state.value}"
            ))

        return errors

    @classmethod
    def _validate_data_consistency(cls, context: SessionContext,
                                   state: Optional[FlowState]) -> List[ValidationError]:
        """Validate internal data consistency"""
        errors = []

        if context.device_selected_from_profile and not context.device_id:
            errors.append(ValidationError(
                "device_id",
                "Device marked as selected from profile but no saved device id is set"
            ))

        if state == FlowState.ASK_SERIAL:
            manufacturer = context.device.manufacturer or ""
            if context.intent != Intent.DRIVER or not settings.requires_serial(manufacturer):
                errors.append(ValidationError(
                    "device.serial",
                    "Serial collection is only used for driver requests on serial-based portals",
                    severity="warning"
                ))

        if context.confirmation.confirmed and not context.confirmation.summary:
            errors.append(ValidationError(
                "confirmation.summary",
                "Confirmed request has no summary",
                severity="warning"
            ))

        return errors

    @staticmethod
    def _device_identified(context: SessionContext) -> bool:
        if context.device.manufacturer and context.device.model:
            return True
        return bool(context.device_selected_from_profile and context.device_id)

    @staticmethod
    def _lookup(context: SessionContext, dotted: str) -> Any:
        value: Any = context
        for part in dotted.split("."):
            value = getattr(value, part, None)
            if value is None:
                return None
        return value
