from __future__ import annotations

from typing import Optional, Protocol

from fastapi import Header, HTTPException
from pydantic import BaseModel

from .config import settings
from .errors import UnauthorizedError


class Principal(BaseModel):
    id: str
    role: str


class IdentityVerifier(Protocol):
    def verify(self, credential: Optional[str]) -> Principal:
        ...


class BearerTokenVerifier:
    """Accepts any bearer token, or only ``expected_token`` when one is configured.

    Until a real identity provider is wired in, every caller is the same
    development principal.
    """

    def __init__(self, expected_token: Optional[str] = None) -> None:
        self.expected_token = expected_token

    def verify(self, credential: Optional[str]) -> Principal:
        if not credential or not credential.startswith("Bearer "):
            raise UnauthorizedError("Missing or invalid authentication token")
        token = credential.split(" ", 1)[1].strip()
        if not token:
            raise UnauthorizedError("Missing or invalid authentication token")
        if self.expected_token and token != self.expected_token:
            raise UnauthorizedError("Token is invalid or expired")
        return Principal(id="user_12345", role="student")


verifier: IdentityVerifier = BearerTokenVerifier(settings.api_token)


def require_principal(authorization: Optional[str] = Header(default=None)) -> Principal:
    try:
        return verifier.verify(authorization)
    except UnauthorizedError as exc:
        raise HTTPException(status_code=401, detail=str(exc))
