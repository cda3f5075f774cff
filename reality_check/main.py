"""
ASGI entry point: ``uvicorn reality_check.main:app``
"""

import os

import uvicorn

from .core.app import create_app

app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "reality_check.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_config=None,
    )
