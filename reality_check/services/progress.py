"""
Progress channel
----------------
Ordered stage notifications for one question. Each pipeline stage is
announced at most once and only moving forward; after a terminal event
(the final answer or an error) nothing else is delivered.

The transport is an injected async sink so the same channel drives a
WebSocket in production and a plain list in tests. With no sink the channel
is a no-op, which lets HTTP callers run the pipeline unchanged.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import structlog

from ..models.conversation import STAGE_ORDER, PipelineStage

logger = structlog.get_logger(__name__)

ProgressSink = Callable[[str, Dict[str, Any]], Awaitable[None]]

PROGRESS_EVENT = "search-progress"
RESPONSE_EVENT = "question-response"
ERROR_EVENT = "error"


async def _noop_sink(event: str, data: Dict[str, Any]) -> None:
    return None


class ProgressChannel:
    def __init__(self, sink: Optional[ProgressSink] = None):
        self._sink: ProgressSink = sink or _noop_sink
        self._last_index = -1
        self._terminal = False
        self.emitted: List[PipelineStage] = []

    @property
    def terminated(self) -> bool:
        return self._terminal

    async def emit(self, stage: Union[PipelineStage, str], message: str) -> bool:
        """Announce ``stage``; returns False when the event was dropped."""
        stage = PipelineStage(stage)
        if self._terminal:
            logger.debug("Progress after terminal event dropped", stage=stage.value)
            return False
        index = STAGE_ORDER.index(stage)
        if index <= self._last_index:
            logger.warning(
                "Out-of-order progress event dropped",
                stage=stage.value,
                last_stage=STAGE_ORDER[self._last_index].value,
            )
            return False
        self._last_index = index
        self.emitted.append(stage)
        await self._send(PROGRESS_EVENT, {"stage": stage.value, "message": message})
        return True

    async def respond(self, payload: Dict[str, Any]) -> bool:
        if self._terminal:
            return False
        self._terminal = True
        await self._send(RESPONSE_EVENT, payload)
        return True

    async def fail(self, message: str) -> bool:
        """Send the single terminal error event."""
        if self._terminal:
            return False
        self._terminal = True
        await self._send(ERROR_EVENT, {"message": message})
        return True

    async def _send(self, event: str, data: Dict[str, Any]) -> None:
        try:
            await self._sink(event, data)
        except Exception as e:
            # Client may have disconnected; the pipeline keeps running
            logger.warning("Progress delivery failed", progress_event=event, error=str(e))
