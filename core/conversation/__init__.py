"""
Core conversation handling system.

This package provides the guided download flow:
- Declarative state table (state_config)
- Flow engine and transition rules (orchestration)
- Answer normalisation (understanding)
- Context merging, validation and session storage (context)
"""

# Must be imported before state_config
from .orchestration import (
    FlowEngine,
    SessionRestoreError,
    TransitionRules,
    TransitionValidator,
)
from .state_config import StateConfig, STATE_TABLE, get_state_config, UnknownFlowStateError
from .context import (
    ContextManager,
    ContextValidator,
    SessionStorage,
)
from .understanding import (
    IntentDetector,
    EntityExtractor,
)

__all__ = [
    # Orchestration
    'FlowEngine',
    'SessionRestoreError',
    'TransitionRules',
    'TransitionValidator',

    # State table
    'StateConfig',
    'STATE_TABLE',
    'get_state_config',
    'UnknownFlowStateError',

    # Context
    'ContextManager',
    'ContextValidator',
    'SessionStorage',

    # Understanding
    'IntentDetector',
    'EntityExtractor',
]
