"""Conversation orchestration components"""

from .transitions import TransitionRules, TransitionValidator, ContextPolicy, DEVICE_SLOTS
from .flow_engine import FlowEngine, SessionRestoreError, INITIAL_STATE

__all__ = [
    'TransitionRules',
    'TransitionValidator',
    'ContextPolicy',
    'DEVICE_SLOTS',
    'FlowEngine',
    'SessionRestoreError',
    'INITIAL_STATE',
]
