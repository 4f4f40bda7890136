"""Process configuration, read once from the environment at startup."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .services.rating import (
    HIGH_RATING_K_FACTOR,
    K_FACTOR,
    EloPolicy,
)

WEAK_SECRETS = {"secret", "changeme", "default"}


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _parse_float(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number (got {raw!r})") from None
    if value < 0:
        raise RuntimeError(f"{name} cannot be negative")
    return value


def _parse_int(env: Mapping[str, str], name: str, default: int, *, minimum: int = 1) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise RuntimeError(f"{name} must be at least {minimum}")
    return value


def _parse_origins(raw: str | None) -> tuple[str, ...]:
    origins = tuple(o.strip() for o in (raw or "").split(",") if o.strip())
    # Credentials + wildcard origins is unsafe
    if "*" in origins:
        raise RuntimeError(
            "ALLOWED_ORIGINS cannot include '*' (wildcard). Specify explicit, trusted origins."
        )
    return origins


def validate_jwt_secret(secret: str | None) -> str:
    if not secret:
        raise RuntimeError("JWT_SECRET environment variable is required")
    if len(secret) < 32 or secret.lower() in WEAK_SECRETS:
        raise RuntimeError(
            "JWT_SECRET must be at least 32 characters and not a common default"
        )
    return secret


@dataclass(frozen=True)
class Settings:
    database_url: str
    jwt_secret: str
    api_prefix: str = "/api"
    rankings_job_secret: Optional[str] = None
    elo_policy: EloPolicy = EloPolicy()
    settlement_max_attempts: int = 3
    settlement_retry_backoff: float = 0.05
    allowed_origins: tuple[str, ...] = ()
    allow_credentials: bool = True


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from ``env`` (defaults to ``os.environ``).

    Raises ``RuntimeError`` for missing or malformed values so a misconfigured
    process fails at startup instead of on the first settlement.
    """

    env = os.environ if env is None else env

    database_url = (env.get("DATABASE_URL") or "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL environment variable is required")

    policy = EloPolicy(
        k_factor=_parse_float(env, "ELO_K_FACTOR", K_FACTOR),
        high_rating_threshold=_parse_float(env, "ELO_HIGH_RATING_THRESHOLD", None),
        high_rating_k_factor=_parse_float(
            env, "ELO_HIGH_RATING_K_FACTOR", HIGH_RATING_K_FACTOR
        ),
    )

    return Settings(
        database_url=database_url,
        jwt_secret=validate_jwt_secret(env.get("JWT_SECRET")),
        api_prefix=_canon_prefix(env.get("API_PREFIX")),
        rankings_job_secret=(env.get("RANKINGS_JOB_SECRET") or "").strip() or None,
        elo_policy=policy,
        settlement_max_attempts=_parse_int(env, "SETTLEMENT_MAX_ATTEMPTS", 3),
        settlement_retry_backoff=_parse_float(env, "SETTLEMENT_RETRY_BACKOFF", 0.05),
        allowed_origins=_parse_origins(env.get("ALLOWED_ORIGINS")),
        allow_credentials=(env.get("ALLOW_CREDENTIALS", "true") or "true").lower() == "true",
    )
