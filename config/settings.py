"""Global Settings - Loads configuration from environment variables.

Centralizes all configuration so the CLI and auth code don't read env vars
directly. Command-line flags override these values.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_CONFIG_DIR = "~/.config/momentary_toil"
DEFAULT_REDIRECT_URI = "http://localhost:8000/callback"


@dataclass
class Settings:
    """Application-wide settings loaded from environment variables."""

    # Credential storage
    config_dir: str = DEFAULT_CONFIG_DIR
    profile: str = "default"

    # OAuth callback
    redirect_uri: str = DEFAULT_REDIRECT_URI
    callback_timeout: float = 300.0

    # Meeting load
    calendar_id: str = "primary"
    work_hours_per_week: float = 40.0


def load_settings() -> Settings:
    """Load settings from environment variables with sensible defaults.

    Environment variables:
        MOMENTARY_TOIL_CONFIG_DIR: Directory holding one <profile>.json per profile
        MOMENTARY_TOIL_PROFILE: Profile (identity) to load credentials for
        MOMENTARY_TOIL_REDIRECT_URI: Default redirect URI for new profiles
        MOMENTARY_TOIL_CALLBACK_TIMEOUT: Seconds to wait for the browser redirect
        MOMENTARY_TOIL_CALENDAR_ID: Calendar to read events from
        MOMENTARY_TOIL_WORK_HOURS: Working hours per week

    Returns:
        A populated Settings instance.
    """
    return Settings(
        config_dir=os.getenv("MOMENTARY_TOIL_CONFIG_DIR", DEFAULT_CONFIG_DIR),
        profile=os.getenv("MOMENTARY_TOIL_PROFILE", "default"),
        redirect_uri=os.getenv("MOMENTARY_TOIL_REDIRECT_URI", DEFAULT_REDIRECT_URI),
        callback_timeout=float(os.getenv("MOMENTARY_TOIL_CALLBACK_TIMEOUT", "300")),
        calendar_id=os.getenv("MOMENTARY_TOIL_CALENDAR_ID", "primary"),
        work_hours_per_week=float(os.getenv("MOMENTARY_TOIL_WORK_HOURS", "40")),
    )
