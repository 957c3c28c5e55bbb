"""
Application Entry Point
Run with: python main.py or uvicorn main:app --reload
"""

import uvicorn

from labeler.api.main import app  # noqa: F401

if __name__ == "__main__":
    uvicorn.run(
        "labeler.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,  # dev only
        log_level="info",
    )
