"""
Error handlers for the Reality Check API
"""

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..utils.errors import (
    ConversationNotFoundError,
    InvalidQuestionError,
    ResearchPipelineError,
)

logger = structlog.get_logger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with detailed messages"""
    error_messages = []
    for error in exc.errors():
        field = ".".join(str(x) for x in error["loc"][1:])  # Skip 'body'
        error_messages.append(f"{field}: {error['msg']}" if field else error["msg"])

    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation Error",
            "detail": error_messages,
            "request_id": _request_id(request),
        },
    )


async def invalid_question_handler(request: Request, exc: InvalidQuestionError):
    return JSONResponse(
        status_code=400,
        content={"error": exc.message, "request_id": _request_id(request)},
    )


async def conversation_not_found_handler(request: Request, exc: ConversationNotFoundError):
    return JSONResponse(
        status_code=404,
        content={"error": "Conversation not found", "request_id": _request_id(request)},
    )


async def pipeline_error_handler(request: Request, exc: ResearchPipelineError):
    # Already logged with full context inside the pipeline
    return JSONResponse(
        status_code=500,
        content={"error": "Failed to process question", "request_id": _request_id(request)},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTP Error",
            "detail": exc.detail,
            "status_code": exc.status_code,
            "request_id": _request_id(request),
        },
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        request_id=_request_id(request),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "request_id": _request_id(request)},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(InvalidQuestionError, invalid_question_handler)
    app.add_exception_handler(ConversationNotFoundError, conversation_not_found_handler)
    app.add_exception_handler(ResearchPipelineError, pipeline_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
