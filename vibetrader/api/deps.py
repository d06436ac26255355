"""FastAPI dependencies."""
from typing import Optional, Tuple
from fastapi import Request
from vibetrader.core.security import verified_subject
from vibetrader.services.quota import IDENTITY_USER, IDENTITY_IP


def _bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


def resolve_identity(request: Request) -> Tuple[str, str]:
    """
    Resolve the caller's quota identity.

    A verified identity-provider token yields its subject as a "user" identity.
    Everyone else is keyed by network origin: the first X-Forwarded-For entry,
    else the socket peer.
    """
    token = _bearer_token(request)
    if token:
        user_id = verified_subject(token)
        if user_id:
            return user_id, IDENTITY_USER

    forwarded_for = request.headers.get("x-forwarded-for", "")
    ip = forwarded_for.split(",")[0].strip() if forwarded_for else ""
    if not ip:
        ip = request.client.host if request.client else "unknown"
    return f"ip:{ip}", IDENTITY_IP


async def get_identity(request: Request) -> Tuple[str, str]:
    """Identity from the quota middleware when it already ran, else resolved here."""
    identity = getattr(request.state, "identity", None)
    identity_class = getattr(request.state, "identity_class", None)
    if identity and identity_class:
        return identity, identity_class
    return resolve_identity(request)


def get_components(request: Request):
    """Application components built at startup (see services/container.py)."""
    return request.app.state.components
