"""
FastAPI Dependencies for DigiBridge API.

Provides:
- Redis client
- User store, TOTP engine, session issuer and enrollment flow singletons
- Bearer session authentication
- Rate limiting for the enrollment endpoints (Redis-backed)
"""
import os
import threading
import time
import logging
from typing import Dict, List, Optional

import redis
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..auth.enrollment import DEFAULT_ISSUER_LABEL, EnrollmentFlow
from ..auth.mfa import DEFAULT_WINDOW, TOTPEngine
from ..auth.provisioning import ProvisioningEncoder
from ..auth.replay import UsedCodeRegistry
from ..auth.session import SessionClaims, SessionIssuer
from ..database.user_store import UserStore, get_user_store

logger = logging.getLogger(__name__)


# ============================================
# Redis Client
# ============================================

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """
    Get Redis client singleton.

    Returns None if Redis is not configured or unavailable.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    host = os.getenv("REDIS_HOST", "localhost")
    port = int(os.getenv("REDIS_PORT", "6379"))
    password = os.getenv("REDIS_PASSWORD", "") or None
    db = int(os.getenv("REDIS_DB", "0"))

    try:
        client = redis.Redis(
            host=host,
            port=port,
            password=password,
            db=db,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        # Test connection
        client.ping()
        logger.info(f"Redis connected: {host}:{port}")
        _redis_client = client
        return _redis_client
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}. Using in-memory fallback.")
        return None


# Security scheme
security = HTTPBearer(auto_error=False)


# ============================================
# Core Dependencies
# ============================================

def get_store() -> UserStore:
    """Get user store."""
    return get_user_store()


_session_issuer: Optional[SessionIssuer] = None


def get_session_issuer() -> SessionIssuer:
    """
    Get singleton session issuer.

    Raises:
        SigningKeyMissing: If JWT_SECRET is not configured.
    """
    global _session_issuer
    if _session_issuer is None:
        _session_issuer = SessionIssuer.from_env()
    return _session_issuer


def get_totp_engine() -> TOTPEngine:
    """Get TOTP engine configured from TOTP_VALID_WINDOW."""
    window = int(os.getenv("TOTP_VALID_WINDOW", str(DEFAULT_WINDOW)))
    return TOTPEngine(window=window)


_replay_registry: Optional[UsedCodeRegistry] = None


def get_replay_registry() -> Optional[UsedCodeRegistry]:
    """
    Get the used-code registry, or None when replay protection is off.

    Enabled with TOTP_REPLAY_PROTECTION=true.
    """
    global _replay_registry

    enabled = os.getenv("TOTP_REPLAY_PROTECTION", "false").lower() == "true"
    if not enabled:
        return None

    if _replay_registry is None:
        _replay_registry = UsedCodeRegistry(get_redis_client())
    return _replay_registry


def get_enrollment_flow(
    store: UserStore = Depends(get_store),
    session_issuer: SessionIssuer = Depends(get_session_issuer),
) -> EnrollmentFlow:
    """Build the enrollment flow for a request."""
    return EnrollmentFlow(
        store=store,
        engine=get_totp_engine(),
        encoder=ProvisioningEncoder(),
        session_issuer=session_issuer,
        issuer_label=os.getenv("TOTP_ISSUER", DEFAULT_ISSUER_LABEL),
        replay_registry=get_replay_registry(),
    )


# ============================================
# Authentication Dependencies
# ============================================

async def get_current_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session_issuer: SessionIssuer = Depends(get_session_issuer),
) -> SessionClaims:
    """
    Validate bearer session credential and return its claims.

    Raises:
        HTTPException: If the Authorization header is missing.
        TokenError: If the credential is invalid or expired.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return session_issuer.validate(credentials.credentials)


# ============================================
# Enrollment Rate Limiting (IP-based)
# ============================================

# scope -> (max requests, window seconds)
RATE_LIMITS = {
    "profile": (20, 3600),
    "verify": (10, 900),
}


class EnrollmentRateLimiter:
    """
    Per-IP request limits for the enrollment endpoints.

    Redis INCR with a key expiry when Redis is available, timestamps held
    in memory otherwise.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client
        self._hits: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def hit(self, scope: str, ip: str) -> bool:
        """
        Count a request from ``ip`` against ``scope``.

        Returns:
            False once the scope's limit for the current window is used up.
        """
        limit, window = RATE_LIMITS[scope]
        key = f"{scope}:{ip}"

        if self.redis is not None:
            try:
                full_key = f"digibridge:ratelimit:{key}"
                count = self.redis.incr(full_key)
                if count == 1:
                    self.redis.expire(full_key, window)
                return count <= limit
            except redis.RedisError as e:
                logger.warning(f"Redis error in rate limit check: {e}")

        now = time.time()
        with self._lock:
            self._evict(now)
            hits = self._hits.setdefault(key, [])
            if len(hits) >= limit:
                return False
            hits.append(now)
            return True

    def _evict(self, now: float) -> None:
        """Drop timestamps outside their window and keys left with none."""
        for key in list(self._hits):
            _, window = RATE_LIMITS[key.split(":", 1)[0]]
            live = [ts for ts in self._hits[key] if now - ts < window]
            if live:
                self._hits[key] = live
            else:
                del self._hits[key]


# Singleton rate limiter
_rate_limiter: Optional[EnrollmentRateLimiter] = None


def get_rate_limiter() -> EnrollmentRateLimiter:
    """Get singleton enrollment rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = EnrollmentRateLimiter(get_redis_client())
    return _rate_limiter


def _enforce(request: Request, scope: str, message: str) -> None:
    if os.getenv("RATE_LIMIT_ENABLED", "true").lower() != "true":
        return

    ip = request.client.host if request.client else "unknown"
    if not get_rate_limiter().hit(scope, ip):
        _, window = RATE_LIMITS[scope]
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=message,
            headers={"Retry-After": str(window)},
        )


async def check_profile_rate_limit(request: Request) -> None:
    """Profile submissions: 20 per hour per IP."""
    _enforce(request, "profile", "Too many profile submissions. Try again later.")


async def check_verify_rate_limit(request: Request) -> None:
    """Code verification: 10 attempts per 15 minutes per IP."""
    _enforce(request, "verify", "Too many verification attempts. Try again later.")
