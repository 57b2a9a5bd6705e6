"""Configuration management for API keys and settings."""

import os
from typing import Optional
from pathlib import Path

from dotenv import load_dotenv

# config.py is in sahayak/, .env is in project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path, override=False)


class Config:
    """Application configuration from environment variables."""

    # Gateway settings
    GATEWAY_TYPE: str = os.getenv("GATEWAY_TYPE", "gemini")
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY")
    GEMINI_BASE_URL: str = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com")
    GEMINI_LIVE_URL: str = os.getenv(
        "GEMINI_LIVE_URL",
        "wss://generativelanguage.googleapis.com/ws/"
        "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent",
    )
    # Chat and audio messages use the stronger model for multilingual reasoning
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-pro")
    GEMINI_FAST_MODEL: str = os.getenv("GEMINI_FAST_MODEL", "gemini-2.5-flash")
    GEMINI_LIVE_MODEL: str = os.getenv("GEMINI_LIVE_MODEL", "gemini-2.5-flash-native-audio-preview-12-2025")

    # Upper bound for one-shot gateway calls
    GATEWAY_TIMEOUT_SECONDS: float = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "30"))

    # Audio settings
    CAPTURE_SAMPLE_RATE: int = int(os.getenv("CAPTURE_SAMPLE_RATE", "16000"))
    CAPTURE_FRAME_SAMPLES: int = int(os.getenv("CAPTURE_FRAME_SAMPLES", "4096"))
    PLAYBACK_SAMPLE_RATE: int = int(os.getenv("PLAYBACK_SAMPLE_RATE", "24000"))
    INPUT_DEVICE: Optional[str] = os.getenv("INPUT_DEVICE") or None

    # Portal settings
    PORTAL_NAME: str = os.getenv("PORTAL_NAME", "SAMRIDDHI PORTAL")
    ASSISTANT_NAME: str = os.getenv("ASSISTANT_NAME", "Samriddhi Sahayak")
    DEFAULT_LANGUAGE: str = os.getenv("DEFAULT_LANGUAGE", "en")

    # Server settings
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8010"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info")

    @classmethod
    def validate(cls) -> list[str]:
        """Validate configuration and return list of missing required settings."""
        missing = []

        if cls.GATEWAY_TYPE == "gemini" and not cls.GEMINI_API_KEY:
            missing.append("GEMINI_API_KEY (required when GATEWAY_TYPE=gemini)")

        if cls.GATEWAY_TIMEOUT_SECONDS <= 0:
            missing.append("GATEWAY_TIMEOUT_SECONDS (must be positive)")

        return missing

    @classmethod
    def input_device(cls):
        """Input device as sounddevice expects it: an index, a name, or None for the default."""
        if cls.INPUT_DEVICE is None:
            return None
        dev = cls.INPUT_DEVICE.strip()
        return int(dev) if dev.isdigit() else dev
