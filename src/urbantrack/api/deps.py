"""Dependency injection for FastAPI routes."""

from __future__ import annotations

from fastapi import Request

from urbantrack.services.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    """Dependency that provides the wired store/engine runtime."""
    return request.app.state.runtime
