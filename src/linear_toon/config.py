"""Centralized configuration for linear-toon."""

import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    return int(raw)


class Config:
    """
    linear-toon configuration with environment variable overrides.

    All configuration values are centralized here with sensible defaults.
    Values can be overridden via environment variables.
    """

    # ========================================================================
    # TOON Encoding
    # ========================================================================
    TOON_INDENT: str = os.getenv("TOON_INDENT", "  ")
    TOON_TITLE_MAX: int | None = int(os.getenv("TOON_TITLE_MAX", "500"))
    TOON_DESC_MAX: int | None = int(os.getenv("TOON_DESC_MAX", "3000"))
    TOON_DEFAULT_MAX: int | None = _env_optional_int("TOON_DEFAULT_MAX")
    TOON_TRUNCATION_INDICATOR: str = os.getenv(
        "TOON_TRUNCATION_INDICATOR", "... [truncated]"
    )
    TOON_INCLUDE_EMPTY_SECTIONS: bool = _env_bool("TOON_INCLUDE_EMPTY_SECTIONS", "false")

    # ========================================================================
    # Workspace
    # ========================================================================
    LINEAR_HOST: str = os.getenv("LINEAR_HOST", "linear.app")
    DEFAULT_TEAM: str = os.getenv("DEFAULT_TEAM", "")
    USER_PROFILES_PATH: str = os.getenv("USER_PROFILES_PATH", "./team-profiles.yaml")

    # ========================================================================
    # Registry Lifecycle
    # ========================================================================
    TRANSPORT: str = os.getenv("TRANSPORT", "stdio")
    REGISTRY_HTTP_TTL_SECONDS: int = int(os.getenv("REGISTRY_HTTP_TTL_SECONDS", "1800"))

    # ========================================================================
    # Redis Snapshot Cache
    # ========================================================================
    ENABLE_SNAPSHOT_CACHE: bool = _env_bool("ENABLE_SNAPSHOT_CACHE", "false")
    SNAPSHOT_CACHE_TTL_SECONDS: int = int(os.getenv("SNAPSHOT_CACHE_TTL_SECONDS", "3600"))
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    REDIS_MAX_CONNECTIONS: int = int(os.getenv("REDIS_MAX_CONNECTIONS", "20"))
    REDIS_SOCKET_CONNECT_TIMEOUT: float = float(
        os.getenv("REDIS_SOCKET_CONNECT_TIMEOUT", "2")
    )
    REDIS_SOCKET_TIMEOUT: float = float(os.getenv("REDIS_SOCKET_TIMEOUT", "2"))
    REDIS_CONNECT_RETRIES: int = int(os.getenv("REDIS_CONNECT_RETRIES", "3"))
    REDIS_CONNECT_RETRY_DELAY: float = float(os.getenv("REDIS_CONNECT_RETRY_DELAY", "0.1"))
    REDIS_CONNECT_RETRY_MAX_DELAY: float = float(
        os.getenv("REDIS_CONNECT_RETRY_MAX_DELAY", "1.0")
    )

    @classmethod
    def validate(cls) -> bool:
        """
        Validate configuration consistency.

        Checks:
        - Truncation limits are positive when set
        - Truncation limits are longer than the indicator
        - TRANSPORT is a known transport
        - TTL and Redis values are > 0

        Returns:
            True if validation passes

        Raises:
            ValueError: If validation fails
        """
        errors = []

        for name in ("TOON_TITLE_MAX", "TOON_DESC_MAX", "TOON_DEFAULT_MAX"):
            limit = getattr(cls, name)
            if limit is None:
                continue
            if limit <= 0:
                errors.append(f"{name} must be > 0, got {limit}")
            elif limit <= len(cls.TOON_TRUNCATION_INDICATOR):
                errors.append(
                    f"{name} ({limit}) must be longer than the truncation indicator "
                    f"({len(cls.TOON_TRUNCATION_INDICATOR)} chars)"
                )

        if cls.TRANSPORT not in ("stdio", "http"):
            errors.append(f"TRANSPORT must be one of [stdio, http], got '{cls.TRANSPORT}'")

        if cls.REGISTRY_HTTP_TTL_SECONDS <= 0:
            errors.append(
                f"REGISTRY_HTTP_TTL_SECONDS must be > 0, got {cls.REGISTRY_HTTP_TTL_SECONDS}"
            )

        if not cls.LINEAR_HOST or "/" in cls.LINEAR_HOST:
            errors.append(f"LINEAR_HOST must be a bare host name, got '{cls.LINEAR_HOST}'")

        if cls.SNAPSHOT_CACHE_TTL_SECONDS <= 0:
            errors.append(
                f"SNAPSHOT_CACHE_TTL_SECONDS must be > 0, got {cls.SNAPSHOT_CACHE_TTL_SECONDS}"
            )
        if cls.REDIS_MAX_CONNECTIONS <= 0:
            errors.append(
                f"REDIS_MAX_CONNECTIONS must be > 0, got {cls.REDIS_MAX_CONNECTIONS}"
            )
        if cls.REDIS_SOCKET_CONNECT_TIMEOUT <= 0:
            errors.append(
                "REDIS_SOCKET_CONNECT_TIMEOUT must be > 0, "
                f"got {cls.REDIS_SOCKET_CONNECT_TIMEOUT}"
            )
        if cls.REDIS_SOCKET_TIMEOUT <= 0:
            errors.append(
                f"REDIS_SOCKET_TIMEOUT must be > 0, got {cls.REDIS_SOCKET_TIMEOUT}"
            )

        if errors:
            raise ValueError(f"Config validation failed: {'; '.join(errors)}")

        return True
