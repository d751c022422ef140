"""
Context management for the guided flow.

Every transition produces a new SessionContext rather than mutating the
previous one. Updates are partial dictionaries: top-level fields are
replaced, sub-records are merged field by field so slots collected earlier
survive later updates.
"""

import logging
from typing import Dict, Any, List

from pydantic import BaseModel

from models.schemas import SessionContext, SavedDevice

logger = logging.getLogger(__name__)


# Sub-records merged field by field instead of being replaced
NESTED_RECORDS = (
    "device",
    "request",
    "confirmation",
    "outcomes",
    "save_device_offer",
    "install_help",
)


class ContextManager:
    """Creates, merges and recycles session contexts"""

    @staticmethod
    def new_context(**overrides: Any) -> SessionContext:
        """Fresh context with every slot at its default"""
        if not overrides:
            return SessionContext()
        return ContextManager.merge(SessionContext(), overrides)

    @staticmethod
    def merge(context: SessionContext, updates: Dict[str, Any]) -> SessionContext:
        """
        Apply a partial update and return a new context.

        Args:
            context: Current context (left untouched)
            updates: Partial update; sub-record values may be dicts or models

        Returns:
            New validated context

        Raises:
            ValueError: for unknown top-level fields; pydantic's
                ValidationError (also a ValueError) for invalid values
        """
        if not updates:
            return context

        unknown = set(updates) - set(SessionContext.model_fields)
        if unknown:
            raise ValueError(f"Unknown context fields: {sorted(unknown)}")

        data = context.model_dump()
        for key, value in updates.items():
            if isinstance(value, BaseModel):
                value = value.model_dump(exclude_unset=True)
            if key in NESTED_RECORDS and isinstance(value, dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value

        return SessionContext.model_validate(data)

    @staticmethod
    def start_new_request(context: SessionContext, retain_device: bool = True) -> SessionContext:
        """
        Context for the next request in the same conversation.

        Intent, request, confirmation, outcomes and offers start over. Saved
        devices are always kept; the device record is kept when retain_device.
        """
        carry: Dict[str, Any] = {"saved_devices": context.saved_devices}
        if retain_device:
            carry.update({
                "device": context.device,
                "device_id": context.device_id,
                "device_selected_from_profile": context.device_selected_from_profile,
            })
        return SessionContext(**carry)

    @staticmethod
    def device_from_saved(saved: SavedDevice) -> Dict[str, Any]:
        """Device record copied from a saved profile device"""
        return {
            "device_name": saved.name,
            "manufacturer": saved.manufacturer,
            "model": saved.model,
            "serial": saved.serial,
            "os_family": saved.os_family,
            "os_version": saved.os_version,
            "device_type": saved.device_type,
        }

    @staticmethod
    def changed_fields(before: SessionContext, after: SessionContext) -> List[str]:
        """Dotted names of fields that differ, for transition logging"""
        changed = []
        old, new = before.model_dump(), after.model_dump()
        for key, value in new.items():
            if key in NESTED_RECORDS:
                changed.extend(
                    f"{key}.{field}" for field, v in value.items()
                    if old[key].get(field) != v
                )
            elif old.get(key) != value:
                changed.append(key)
        return changed
