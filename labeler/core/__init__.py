"""
Core module: Configuration, Database, Logging, Common Utilities
"""

from labeler.core.config import settings
from labeler.core.db import get_session, get_session_maker

__all__ = ["settings", "get_session", "get_session_maker"]
