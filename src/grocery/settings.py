"""Runtime settings read from the environment."""

import os
from dataclasses import dataclass

_settings_instance = None


@dataclass(frozen=True)
class Settings:
    picker_max_concurrency: int = 3
    rider_max_concurrency: int = 1
    assignment_max_attempts: int = 3
    default_fulfillment_style: str = "staffed"
    event_publisher: str = "memory"
    log_format: str = "console"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            picker_max_concurrency=int(env.get("PICKER_MAX_CONCURRENCY", cls.picker_max_concurrency)),
            rider_max_concurrency=int(env.get("RIDER_MAX_CONCURRENCY", cls.rider_max_concurrency)),
            assignment_max_attempts=int(env.get("ASSIGNMENT_MAX_ATTEMPTS", cls.assignment_max_attempts)),
            default_fulfillment_style=env.get("DEFAULT_FULFILLMENT_STYLE", cls.default_fulfillment_style),
            event_publisher=env.get("EVENT_PUBLISHER", cls.event_publisher),
            log_format=env.get("LOG_FORMAT", cls.log_format),
            log_level=env.get("LOG_LEVEL", cls.log_level).upper(),
        )

    def max_concurrency(self, role: str) -> int:
        """Default slot count for a fulfillment role ("picker" or "rider")."""
        if role == "picker":
            return self.picker_max_concurrency
        if role == "rider":
            return self.rider_max_concurrency
        raise ValueError(f"Unknown fulfillment role: {role}")


def get_settings() -> Settings:
    """Return the process-wide settings (read once from the environment)."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings.from_env()
    return _settings_instance


def reset_settings():
    """Forget cached settings so the next call re-reads the environment."""
    global _settings_instance
    _settings_instance = None
