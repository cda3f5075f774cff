"""
Conversation routes: start a conversation, ask questions over HTTP or a
WebSocket that streams stage progress, and read back history.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, WebSocket, WebSocketDisconnect

from ..core.dependencies import get_pipeline, get_sessions
from ..models.conversation import (
    Answer,
    AskRequest,
    HistoryResponse,
    StartConversationRequest,
    StartConversationResponse,
)
from ..services.progress import ProgressChannel
from ..services.research_orchestrator import ResearchPipeline
from ..services.session_store import SessionStore
from ..services.websocket_service import WebSocketProgressSink, WSEventType, WSMessage
from ..utils.errors import (
    ConversationNotFoundError,
    InvalidQuestionError,
    ResearchPipelineError,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/conversation", tags=["conversation"])

GREETING = (
    "Hello! I'm Reality Check, your AI-powered information navigator. Ask me about "
    "any claim, news story, or information you'd like me to verify and analyze."
)

SUGGESTIONS = [
    "I saw a post about electric cars being worse for the environment. Is this true?",
    "Help me understand the different perspectives on this economic policy",
    "Can you fact-check this article I found on social media?",
]


@router.post("/start", response_model=StartConversationResponse)
async def start_conversation(
    body: Optional[StartConversationRequest] = None,
    x_user_id: Optional[str] = Header(None),
    sessions: SessionStore = Depends(get_sessions),
):
    user_id = (body.user_id if body else None) or x_user_id or "anonymous"
    conversation = await sessions.create(user_id)
    logger.info("Conversation started", conversation_id=conversation.id, user_id=user_id)
    return StartConversationResponse(
        conversation_id=conversation.id,
        message=GREETING,
        suggestions=list(SUGGESTIONS),
    )


@router.post("/ask", response_model=Answer)
async def ask_question(
    body: AskRequest,
    pipeline: ResearchPipeline = Depends(get_pipeline),
):
    # InvalidQuestionError / ConversationNotFoundError map to 400 / 404
    return await pipeline.ask(body.question, body.conversation_id, user_id=body.user_id)


@router.get("/{conversation_id}/history", response_model=HistoryResponse)
async def conversation_history(
    conversation_id: str,
    sessions: SessionStore = Depends(get_sessions),
):
    conversation = await sessions.get(conversation_id)
    if conversation is None:
        raise ConversationNotFoundError(conversation_id)
    return HistoryResponse.from_conversation(conversation)


async def _send_error(websocket: WebSocket, message: str) -> None:
    await websocket.send_json(
        WSMessage(type=WSEventType.ERROR, data={"message": message}).model_dump(mode="json")
    )


@router.websocket("/ws")
async def conversation_socket(websocket: WebSocket):
    """Each ``ask-question`` frame runs one pipeline pass on this socket.

    A malformed frame gets an ``error`` event; the socket stays open.
    """
    await websocket.accept()
    pipeline: ResearchPipeline = websocket.app.state.services.pipeline
    await websocket.send_json(
        WSMessage(type=WSEventType.CONNECTED, data={"message": "connected"}).model_dump(mode="json")
    )

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except (ValueError, KeyError, TypeError):
                # non-JSON text or a binary frame
                logger.warning("Rejected malformed WebSocket frame")
                await _send_error(websocket, "Invalid message format")
                continue

            if not isinstance(frame, dict) or frame.get("type") != WSEventType.ASK_QUESTION.value:
                await _send_error(websocket, "Unsupported message type")
                continue

            data = frame.get("data")
            if data is None:
                data = {}
            if not isinstance(data, dict):
                await _send_error(websocket, "Invalid message format")
                continue

            progress = ProgressChannel(WebSocketProgressSink(websocket))
            try:
                await pipeline.ask(
                    data.get("question"),
                    data.get("conversationId"),
                    user_id=data.get("userId"),
                    progress=progress,
                    allow_new=True,
                )
            except InvalidQuestionError as e:
                await progress.fail(e.message)
            except ConversationNotFoundError:
                await progress.fail("Conversation not found")
            except ResearchPipelineError:
                # Terminal error event already sent by the pipeline
                pass
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
