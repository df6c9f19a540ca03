"""Runtime configuration settings."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes", "on")


def _env_timeout(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    return float(raw)


@dataclass
class FhirKitConfig:
    """Configuration for the resolver, client and demo program."""

    # Remote endpoint
    server_url: str = "https://server.fire.ly/r4"
    # No timeout unless the caller asks for one
    timeout: float | None = None

    # Local definition store
    profiles_dir: str = "profiles"
    include_subdirectories: bool = True

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> FhirKitConfig:
        """Load configuration from environment variables."""
        return cls(
            server_url=os.getenv("FHIRKIT_SERVER_URL", "https://server.fire.ly/r4"),
            timeout=_env_timeout("FHIRKIT_TIMEOUT"),
            profiles_dir=os.getenv("FHIRKIT_PROFILES_DIR", "profiles"),
            include_subdirectories=_env_flag("FHIRKIT_INCLUDE_SUBDIRS", "true"),
            log_level=os.getenv("FHIRKIT_LOG_LEVEL", "INFO").upper(),
        )


# Global config instance
_config: FhirKitConfig | None = None


def get_config() -> FhirKitConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = FhirKitConfig.from_env()
    return _config
