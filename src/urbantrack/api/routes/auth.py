"""Login route — POST /api/login."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from urbantrack.api.deps import get_runtime
from urbantrack.api.schemas.riders import LoginRequest, LoginResponse
from urbantrack.core.exceptions import RegistrationError
from urbantrack.services.runtime import Runtime

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, runtime: Runtime = Depends(get_runtime)) -> Any:
    """Log in with an email; the first login registers a new rider."""
    try:
        result = runtime.registration.login(body.email, body.pseudo)
    except RegistrationError as e:
        return JSONResponse(status_code=e.status_code, content={"ok": False, "error": e.detail})
    return LoginResponse(**result)
