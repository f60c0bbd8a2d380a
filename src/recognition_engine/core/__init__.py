"""Core components for the Recognition Engine."""

from recognition_engine.core.config import settings

__all__ = ["settings"]
