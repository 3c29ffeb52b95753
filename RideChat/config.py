"""
Configuration module for RideChat application.
Stores all client settings, overridable from the environment.
"""

import os
from typing import Dict, Any


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration class."""

    # Server Configuration
    DEFAULT_SERVER_ADDRESS = os.environ.get("RIDECHAT_SERVER", "ws://localhost:8765")

    # Local message storage (one JSON file per conversation)
    STORAGE_DIR = os.environ.get("RIDECHAT_STORAGE_DIR", os.path.join(os.getcwd(), "chat_store"))
    STORAGE_KEY_PREFIX = "chat_"

    # Debounce window for persisting the message log
    PERSIST_DEBOUNCE_SECONDS = float(os.environ.get("RIDECHAT_PERSIST_DEBOUNCE", "0.5"))

    # Ask the server for recent history when a session starts
    REQUEST_HISTORY_ON_START = _env_bool("RIDECHAT_REQUEST_HISTORY", True)

    # Display name used when the peer's name is unknown
    PEER_LABEL = "Driver"

    @classmethod
    def get_config(cls) -> Dict[str, Any]:
        """Get all configuration values as a dictionary."""
        return {
            "DEFAULT_SERVER_ADDRESS": cls.DEFAULT_SERVER_ADDRESS,
            "STORAGE_DIR": cls.STORAGE_DIR,
            "STORAGE_KEY_PREFIX": cls.STORAGE_KEY_PREFIX,
            "PERSIST_DEBOUNCE_SECONDS": cls.PERSIST_DEBOUNCE_SECONDS,
            "REQUEST_HISTORY_ON_START": cls.REQUEST_HISTORY_ON_START,
            "PEER_LABEL": cls.PEER_LABEL,
        }


# Create config instance
config = Config()
