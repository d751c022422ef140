"""
Flow engine for the guided download conversation.

The engine owns exactly one (state, context) pair and advances it by running
the state table. It performs no I/O: search, safety scanning and profile
persistence are done by the caller, which reports back with synthetic inputs
such as "results:ok" or "risk:verified" (see the ``awaits`` field of each
directive).
"""

from typing import Dict, Any, List, Optional
import logging

from config import settings
from models.schemas import FlowState, SessionContext, RenderDirective
from core.conversation.context.manager import ContextManager
from core.conversation.context.validators import ContextValidator
from core.conversation.orchestration.transitions import TransitionRules, ContextPolicy
from core.conversation.state_config import get_state_config

logger = logging.getLogger(__name__)


INITIAL_STATE = FlowState.DETECT_INTENT

# Upper bound on chained auto states resolved in one transition
MAX_AUTO_STEPS = 10


class SessionRestoreError(ValueError):
    """Raised when a snapshot cannot be turned back into a running flow"""

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.errors = errors or []


class FlowEngine:
    """
    Drives one guided conversation through the state table.

    Each call to transition() consumes one user (or caller) input and
    returns the directive for the state the flow lands in.
    """

    def __init__(self, state: FlowState = INITIAL_STATE,
                 context: Optional[SessionContext] = None):
        self.state: FlowState = state
        self.context: SessionContext = context or ContextManager.new_context()
        self.history: List[FlowState] = [state]

    def transition(self, raw: str) -> RenderDirective:
        """
        Process one input and move to the next state.

        Args:
            raw: The user's message, a clicked option label, or a caller signal

        Returns:
            Directive describing the state the flow is now in
        """
        raw = raw or ""
        from_state = self.state
        config = get_state_config(from_state)

        context = self.context
        if config.process_input:
            updates = config.process_input(context, raw)
            context = ContextManager.merge(context, updates)

        to_state = config.next_state(context, raw) if config.next_state else from_state

        context = self._apply_policy(from_state, to_state, context)
        to_state, context = self._resolve_auto(to_state, context)

        changed = ContextManager.changed_fields(self.context, context)
        self.state = to_state
        self.context = context
        self._record(to_state)

        logger.info(
            f"Flow transition: {from_state.value} -> {to_state.value}",
            extra={
                "reason": TransitionRules.get_transition_reason(from_state, to_state),
                "changed_fields": changed,
                "history_size": len(self.history),
            }
        )

        return self.render()

    def _apply_policy(self, from_state: FlowState, to_state: FlowState,
                      context: SessionContext) -> SessionContext:
        policy = TransitionRules.get_context_policy(from_state, to_state)
        if policy == ContextPolicy.RESET:
            return ContextManager.new_context()
        if policy == ContextPolicy.NEW_REQUEST:
            return ContextManager.start_new_request(
                context, retain_device=settings.RETAIN_DEVICE_ON_NEW_REQUEST
            )
        return context

    def _resolve_auto(self, state: FlowState, context: SessionContext):
        """Follow auto states until one that needs input is reached"""
        for _ in range(MAX_AUTO_STEPS):
            config = get_state_config(state)
            if not config.auto:
                return state, context
            if config.process_input:
                context = ContextManager.merge(context, config.process_input(context, ""))
            next_state = config.next_state(context, "")
            logger.debug(f"Auto state {state.value} resolved to {next_state.value}")
            self._record(state)
            state = next_state
        raise RuntimeError(f"Auto states did not settle after {MAX_AUTO_STEPS} steps")

    def _record(self, state: FlowState) -> None:
        """Append to the visit history, keeping only the newest entries"""
        self.history.append(state)
        overflow = len(self.history) - settings.MAX_HISTORY_ITEMS
        if overflow > 0:
            del self.history[:overflow]

    def render(self) -> RenderDirective:
        """Directive for the current state without transitioning"""
        config = get_state_config(self.state)
        return RenderDirective(
            state=self.state,
            message=config.render_message(self.context),
            ui=config.render_ui(self.context),
            awaits=config.awaits,
            context=self.context,
        )

    def inject(self, updates: Dict[str, Any]) -> SessionContext:
        """
        Merge caller-supplied context (saved devices, detected OS, candidate
        links) without changing state.
        """
        context = ContextManager.merge(self.context, updates)
        logger.info(
            f"Context injected in {self.state.value}",
            extra={"changed_fields": ContextManager.changed_fields(self.context, context)}
        )
        self.context = context
        return context

    def reset(self) -> RenderDirective:
        """Return to the initial state with an empty context"""
        logger.info(f"Flow reset from {self.state.value}")
        self.state = INITIAL_STATE
        self.context = ContextManager.new_context()
        self.history = [INITIAL_STATE]
        return self.render()

    @property
    def is_terminal(self) -> bool:
        return get_state_config(self.state).next_state is None

    def snapshot(self) -> Dict[str, Any]:
        """Serialize state for persistence"""
        return {
            "state": self.state.value,
            "context": self.context.model_dump(mode="json"),
            "history": [state.value for state in self.history],
        }

    @classmethod
    def restore(cls, data: Dict[str, Any]) -> 'FlowEngine':
        """
        Rebuild an engine from a snapshot.

        Raises:
            SessionRestoreError: when the state or context is missing, the
                state is unknown, or the context does not satisfy that state
        """
        if not isinstance(data, dict):
            raise SessionRestoreError("Snapshot must be a mapping")
        if data.get("state") is None or data.get("context") is None:
            raise SessionRestoreError("Snapshot must include both state and context")

        try:
            state = FlowState(data["state"])
        except ValueError:
            raise SessionRestoreError(f"Unknown flow state: {data['state']!r}") from None

        try:
            context = SessionContext.model_validate(data["context"])
        except ValueError as e:
            raise SessionRestoreError(f"Invalid context: {e}") from e

        problems = [
            e for e in ContextValidator.validate_context(context, state)
            if e.severity == "error"
        ]
        if problems:
            logger.warning(
                f"Rejected snapshot for {state.value}",
                extra={"errors": [repr(e) for e in problems]}
            )
            raise SessionRestoreError(
                f"Context is inconsistent with state {state.value}", errors=problems
            )

        engine = cls(state=state, context=context)
        try:
            history = [FlowState(s) for s in data.get("history") or [state.value]]
        except ValueError:
            raise SessionRestoreError("Snapshot history contains unknown states") from None
        engine.history = history[-settings.MAX_HISTORY_ITEMS:]
        return engine
