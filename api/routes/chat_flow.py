"""
Guided download chat endpoints.

Each session id is backed by one FlowEngine. Engines are not kept in memory
between requests: the snapshot is stored and the engine is restored on the
next request for that session.
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import Optional, Dict, Any, List
import logging
import uuid

from core.conversation.orchestration import FlowEngine, TransitionRules
from core.conversation.context import SessionStorage
from models.schemas import RenderDirective, FlowState

logger = logging.getLogger(__name__)

router = APIRouter()

session_storage = SessionStorage()


class ChatFlowRequest(BaseModel):
    """One user turn (or caller signal) for a guided flow session"""
    message: str = ""
    session_id: Optional[str] = None
    # Partial context merged before the message is processed
    context: Optional[Dict[str, Any]] = None


class ChatFlowResponse(BaseModel):
    """Render directive plus the session it belongs to"""
    session_id: str
    state: str
    message: Optional[str] = None
    ui: Dict[str, Any]
    awaits: Optional[str] = None
    context: Dict[str, Any]
    notice: Optional[str] = None


def _to_response(session_id: str, directive: RenderDirective,
                 notice: Optional[str] = None) -> ChatFlowResponse:
    data = directive.to_dict()
    return ChatFlowResponse(session_id=session_id, notice=notice, **data)


def _load_engine(session_id: str) -> FlowEngine:
    snapshot = session_storage.load(session_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return FlowEngine.restore(snapshot)


@router.post("/chat/flow", response_model=ChatFlowResponse)
async def chat_flow_endpoint(request: ChatFlowRequest):
    """
    Advance a guided flow session by one input.

    A new session is started when no session id is given or the id is not
    known. Caller signals ("results:ok", "risk:verified", ...) are sent as
    the message once the work named in ``awaits`` has finished.
    """
    session_id = request.session_id or str(uuid.uuid4())

    logger.info(
        f"Chat flow request received",
        extra={
            "session_id": session_id,
            "message_length": len(request.message),
            "has_context": request.context is not None,
        }
    )

    try:
        snapshot = session_storage.load(session_id)
        engine = FlowEngine.restore(snapshot) if snapshot else FlowEngine()

        if request.context:
            engine.inject(request.context)

        directive = engine.transition(request.message)
        session_storage.save(session_id, engine.snapshot())

        logger.info(
            f"Chat flow request processed",
            extra={"session_id": session_id, "state": directive.state.value}
        )

        return _to_response(session_id, directive)

    except ValueError as e:
        logger.warning(f"Validation error in chat flow request: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))

    except Exception as e:
        logger.error(
            f"Error processing chat flow request: {str(e)}",
            extra={"session_id": session_id},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Failed to process chat flow request")


@router.get("/chat/flow/{session_id}", response_model=ChatFlowResponse)
async def get_chat_flow(session_id: str):
    """Current directive for a session, without advancing it"""
    try:
        engine = _load_engine(session_id)
    except ValueError as e:
        logger.warning(f"Stored session {session_id} could not be restored: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))
    return _to_response(session_id, engine.render())


@router.get("/chat/flow/{session_id}/history")
async def get_chat_flow_history(session_id: str) -> Dict[str, List[str]]:
    """States visited so far in a session (for debugging)"""
    snapshot = session_storage.load(session_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return {"history": snapshot.get("history", [])}


@router.post("/chat/flow/{session_id}/reset", response_model=ChatFlowResponse)
async def reset_chat_flow(session_id: str):
    """Abandon the current request and start the flow over"""
    snapshot = session_storage.load(session_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")

    # A corrupt snapshot is discarded rather than restored
    engine = FlowEngine()
    directive = engine.reset()
    session_storage.save(session_id, engine.snapshot())

    logger.info(f"Chat flow reset", extra={"session_id": session_id,
                                           "from_state": snapshot.get("state")})

    notice = TransitionRules.get_abandonment_message(_previous_state(snapshot))
    return _to_response(session_id, directive, notice=notice)


def _previous_state(snapshot: Dict[str, Any]) -> Optional[FlowState]:
    try:
        return FlowState(snapshot.get("state"))
    except ValueError:
        return None
