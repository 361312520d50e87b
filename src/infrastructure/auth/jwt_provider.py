"""JWT authentication provider.

Validates Supabase access tokens (ES256, public keys from the project's JWKS
endpoint) and HS256 tokens signed with the local secret (development and
tests). A valid token yields the ``Session`` the profile core works with:

    {"sub": "<user uuid>", "email": "user@example.com", "exp": ...}
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
import structlog
from jose import JWTError, jwt
from jose.backends import ECKey

from core.config import settings
from domain.entities.profile import Session

logger = structlog.get_logger()

# kid -> JWK, fetched on first use and refetched once on an unknown kid.
_jwks_cache: dict[str, Any] | None = None


async def _get_jwks_keys(refresh: bool = False) -> dict[str, Any]:
    """Return the project's signing keys, keyed by ``kid``."""
    global _jwks_cache
    if _jwks_cache is not None and not refresh:
        return _jwks_cache

    jwks_url = settings.supabase_jwks_url
    if not jwks_url:
        return {}

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(jwks_url, timeout=10.0)
            response.raise_for_status()
            keys = response.json().get("keys", [])
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("jwks_fetch_failed", url=jwks_url, error=str(e))
        return {}

    _jwks_cache = {key["kid"]: key for key in keys if key.get("kid")}
    logger.info("jwks_fetched", key_count=len(_jwks_cache))
    return _jwks_cache


class JWTAuthProvider:
    """IAuthProvider for Supabase-issued and locally-signed JWTs."""

    def __init__(
        self,
        secret_key: str = settings.jwt_secret_key,
        algorithm: str = settings.jwt_algorithm,
        expire_minutes: int = settings.jwt_expire_minutes,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    async def validate_token(self, token: str) -> Optional[Session]:
        """
        Validate a JWT and build the session it identifies.

        Returns:
            Session if the token is valid and names a user and email,
            None otherwise
        """
        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") == "ES256":
                claims = await self._decode_es256(token, header.get("kid"))
            else:
                claims = jwt.decode(
                    token,
                    self._secret_key,
                    algorithms=[self._algorithm],
                    options={"verify_aud": False},
                )
        except JWTError:
            return None

        if not claims:
            return None

        user_id = claims.get("sub")
        email = claims.get("email")
        if not user_id or not email:
            return None
        return Session(user_id=str(user_id), email=str(email))

    async def _decode_es256(self, token: str, kid: Optional[str]) -> Optional[dict[str, Any]]:
        if not kid:
            return None

        key_data = (await _get_jwks_keys()).get(kid)
        if key_data is None:
            # Keys may have rotated since the cache was filled.
            key_data = (await _get_jwks_keys(refresh=True)).get(kid)
        if key_data is None:
            logger.warning("jwks_key_not_found", kid=kid)
            return None

        return jwt.decode(
            token,
            ECKey(key_data, algorithm="ES256"),
            algorithms=["ES256"],
            options={"verify_aud": False},
        )

    def create_token(self, session: Session) -> str:
        """Create an HS256 token for ``session`` (development and tests)."""
        expire = datetime.now(timezone.utc) + timedelta(minutes=self._expire_minutes)
        claims = {
            "sub": session.user_id,
            "email": session.email,
            "role": "authenticated",
            "exp": expire,
        }
        return str(jwt.encode(claims, self._secret_key, algorithm=self._algorithm))
