"""JWT verification for Supabase access tokens.

HS256 tokens are checked against the project's shared secret. RS256/ES256
tokens are checked against the project's JWKS, fetched over httpx and cached.
"""

import asyncio
import time
from typing import Any, Dict, Optional

import httpx
import jwt

from sugarop.schemas.auth import JWTClaims
from sugarop.utils.logging import get_logger

LOGGER = get_logger(__name__)

ASYMMETRIC_ALGORITHMS = ("RS256", "ES256")


class JWKSService:
    """Fetches and caches Supabase JWKS keys."""

    def __init__(
        self,
        supabase_url: str,
        cache_ttl: int = 3600,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30,
    ):
        """Initialize JWKS service.

        Args:
            supabase_url: Supabase project URL
            cache_ttl: Cache time-to-live in seconds
            http_client: Optional shared httpx client
            timeout: HTTP request timeout in seconds
        """
        self.supabase_url = supabase_url.rstrip("/")
        self.jwks_url = f"{self.supabase_url}/auth/v1/.well-known/jwks.json"
        self.cache_ttl = cache_ttl
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

        self._keys_cache: Optional[Dict[str, jwt.PyJWK]] = None
        self._cache_timestamp: Optional[float] = None
        self._lock = asyncio.Lock()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_key(self, kid: str) -> Optional[jwt.PyJWK]:
        """Get a signing key by key ID, refetching once on a cache miss."""
        keys = await self.get_keys()
        if kid not in keys:
            keys = await self.get_keys(force_refresh=True)
        return keys.get(kid)

    async def get_keys(self, force_refresh: bool = False) -> Dict[str, jwt.PyJWK]:
        """Get JWKS keys, using cache if valid.

        Raises:
            RuntimeError: If keys cannot be fetched
        """
        async with self._lock:
            if not force_refresh and self._is_cache_valid():
                return dict(self._keys_cache)

            LOGGER.info("Fetching fresh JWKS keys from Supabase")
            keys = await self._fetch_keys()
            self._keys_cache = keys
            self._cache_timestamp = time.time()
            return dict(keys)

    def _is_cache_valid(self) -> bool:
        if self._keys_cache is None or self._cache_timestamp is None:
            return False
        return time.time() - self._cache_timestamp < self.cache_ttl

    async def _fetch_keys(self) -> Dict[str, jwt.PyJWK]:
        try:
            response = await self._client.get(self.jwks_url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            LOGGER.error(f"Failed to fetch JWKS: {e}", exc_info=True)
            raise RuntimeError(f"Unable to fetch JWKS keys: {e}") from e

        keys: Dict[str, jwt.PyJWK] = {}
        for entry in payload.get("keys", []):
            kid = entry.get("kid")
            if not kid:
                continue
            try:
                keys[kid] = jwt.PyJWK(entry)
            except jwt.PyJWKError as e:
                LOGGER.warning(f"Skipping unusable JWK {kid}: {e}")
        return keys


class JWTVerifier:
    """JWT verifier for Supabase access tokens."""

    def __init__(self, supabase_url: str, jwt_secret: str = "", jwks: Optional[JWKSService] = None):
        """Initialize JWT verifier.

        Args:
            supabase_url: Supabase project URL for issuer validation
            jwt_secret: Supabase JWT secret for HS256 verification
            jwks: JWKS service for asymmetric keys
        """
        self.supabase_url = supabase_url.rstrip("/")
        self.expected_issuer = f"{self.supabase_url}/auth/v1"
        self.jwt_secret = jwt_secret
        self.jwks = jwks

        LOGGER.info(f"JWT verifier initialized for issuer: {self.expected_issuer}")

    async def verify_token(self, token: str) -> JWTClaims:
        """Verify and decode a Supabase JWT token.

        Args:
            token: JWT access token from Authorization header

        Returns:
            Decoded and validated JWT claims

        Raises:
            jwt.InvalidTokenError: If token is invalid or expired
        """
        try:
            header = jwt.get_unverified_header(token)
            alg = header.get("alg")

            if alg == "HS256":
                if not self.jwt_secret:
                    raise jwt.InvalidTokenError("HS256 token received but SUPABASE_JWT_SECRET is not configured")
                key: Any = self.jwt_secret
            elif alg in ASYMMETRIC_ALGORITHMS:
                kid = header.get("kid")
                if not kid:
                    raise jwt.InvalidTokenError("JWT header missing 'kid' (key ID)")
                if self.jwks is None:
                    raise jwt.InvalidTokenError(f"{alg} token received but no JWKS source is configured")
                jwk_key = await self.jwks.get_key(kid)
                if jwk_key is None:
                    raise jwt.InvalidTokenError(f"No matching key found for kid: {kid}")
                key = jwk_key.key
            else:
                raise jwt.InvalidTokenError(f"Unsupported algorithm: {alg}")

            payload = jwt.decode(
                token,
                key,
                algorithms=[alg],
                audience="authenticated",
                issuer=self.expected_issuer,
                options={"require": ["sub", "exp", "iat", "iss"]},
            )
            claims = JWTClaims(**payload)

            LOGGER.debug(f"Successfully verified token for user: {claims.sub}")
            return claims

        except jwt.ExpiredSignatureError as e:
            LOGGER.warning(f"Token expired: {e}")
            raise jwt.InvalidTokenError("Token has expired") from e
        except jwt.InvalidIssuerError as e:
            LOGGER.warning(f"Invalid issuer: {e}")
            raise jwt.InvalidTokenError("Invalid token issuer") from e
        except jwt.InvalidSignatureError as e:
            LOGGER.warning(f"Invalid signature: {e}")
            raise jwt.InvalidTokenError("Invalid token signature") from e
        except jwt.InvalidTokenError as e:
            LOGGER.warning(f"Invalid token: {e}")
            raise
        except Exception as e:
            LOGGER.error(f"Unexpected error during token verification: {e}")
            raise jwt.InvalidTokenError("Token verification failed") from e
