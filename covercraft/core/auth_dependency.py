"""
Authentication dependencies.

Bearer tokens are verified by the Supabase auth API; this service never
decodes or trusts tokens on its own.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from supabase import Client, create_client

from covercraft.db.session import SessionLocal

logger = logging.getLogger(__name__)

_BEARER_PREFIX = re.compile(r"^Bearer\s+", re.IGNORECASE)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Verified identity returned by the auth provider."""
    id: str
    email: Optional[str] = None


class SupabaseIdentityResolver:
    """Exchanges a bearer token for a verified user via the Supabase auth API."""

    def __init__(self, url: Optional[str], anon_key: Optional[str]):
        self.url = url
        self.anon_key = anon_key
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = create_client(self.url, self.anon_key)
        return self._client

    def resolve(self, token: Optional[str]) -> Optional[AuthenticatedUser]:
        """
        Verify a token.

        Returns:
            AuthenticatedUser, or None on any failure (missing config, missing
            token, provider error, unknown user)
        """
        if not self.url or not self.anon_key or not token:
            return None
        try:
            response = self._get_client().auth.get_user(token)
        except Exception as e:
            logger.info(f"Token verification failed: {type(e).__name__}")
            return None

        user = getattr(response, "user", None)
        if not user or not getattr(user, "id", None):
            return None
        return AuthenticatedUser(id=str(user.id), email=getattr(user, "email", None) or None)


def extract_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization") or ""
    return _BEARER_PREFIX.sub("", auth_header).strip()


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_identity_resolver(request: Request) -> SupabaseIdentityResolver:
    """Identity resolver built once at startup."""
    return request.app.state.identity_resolver


def get_optional_user(
    request: Request,
    resolver: SupabaseIdentityResolver = Depends(get_identity_resolver),
) -> Optional[AuthenticatedUser]:
    """Resolve the caller if a valid bearer token is present, else None."""
    return resolver.resolve(extract_bearer_token(request))


def get_current_user(
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> AuthenticatedUser:
    """Require an authenticated caller."""
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user
