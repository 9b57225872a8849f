"""Shared dependencies for API routes."""

import threading

from services.orchestrator import MatchingService

_service: MatchingService | None = None
_lock = threading.Lock()


def get_matching_service() -> MatchingService:
    global _service
    if _service is None:
        with _lock:
            if _service is None:
                _service = MatchingService()
    return _service


def reset_matching_service() -> None:
    """Drop the process-wide service (tests)."""
    global _service
    with _lock:
        _service = None
