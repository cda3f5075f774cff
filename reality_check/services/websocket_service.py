"""
WebSocket framing for conversation events.

Every outbound frame is a :class:`WSMessage`; the ``type`` field carries the
event name the chat client listens for (``search-progress``,
``question-response``, ``error``).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

import structlog
from fastapi import WebSocket
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)


class WSEventType(str, Enum):
    """WebSocket event types"""

    # Connection events
    CONNECTED = "connected"
    ERROR = "error"

    # Client -> server
    ASK_QUESTION = "ask-question"

    # Research events
    SEARCH_PROGRESS = "search-progress"
    QUESTION_RESPONSE = "question-response"


class WSMessage(BaseModel):
    """WebSocket message structure"""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: WSEventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any]


class WebSocketProgressSink:
    """Progress sink writing :class:`WSMessage` frames to one socket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def __call__(self, event: str, data: Dict[str, Any]) -> None:
        message = WSMessage(type=WSEventType(event), data=data)
        await self.websocket.send_json(message.model_dump(mode="json"))
