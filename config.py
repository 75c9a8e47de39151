"""
Configuration settings for phrase-drill.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Manual Presentation
    # ========================================
    countdown_ticks: int = Field(
        default=5,
        ge=1,
        description="Countdown ticks before the back of a card is revealed",
    )
    countdown_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between countdown ticks",
    )
    answer_settle_delay: float = Field(
        default=0.5,
        ge=0,
        description="Delay between recording an answer and presenting the next card (seconds)",
    )

    # ========================================
    # Auto-Play
    # ========================================
    source_phase_floor: float = Field(
        default=8.0,
        ge=0,
        description="Minimum duration of the front (source language) phase (seconds)",
    )
    target_phase_floor: float = Field(
        default=8.0,
        ge=0,
        description="Minimum duration of the first back (target language) phase (seconds)",
    )
    repeat_phase_floor: float = Field(
        default=5.0,
        ge=0,
        description="Minimum duration of the repeated back phase (seconds)",
    )
    progress_tick_interval: float = Field(
        default=0.1,
        gt=0,
        description="Interval between phase progress reports (seconds)",
    )
    autoplay_start_delay: float = Field(
        default=0.1,
        ge=0,
        description="Delay before the first auto-play card starts (seconds)",
    )
    autoplay_next_card_delay: float = Field(
        default=0.3,
        ge=0,
        description="Transition delay between auto-play cards (seconds)",
    )

    # ========================================
    # Speech
    # ========================================
    speech_backend: Literal["silent", "pyttsx3"] = Field(
        default="silent",
        description="Narration backend (pyttsx3 requires the 'speech' extra)",
    )
    speech_stop_settle: float = Field(
        default=0.5,
        ge=0,
        description="Wait after stopping an in-flight utterance (seconds)",
    )
    speech_idle_settle: float = Field(
        default=0.2,
        ge=0,
        description="Wait before speaking when nothing was playing (seconds)",
    )
    speech_done_grace: float = Field(
        default=0.8,
        ge=0,
        description="Extra wait after the engine reports an utterance done (seconds)",
    )
    speech_start_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Give up on an utterance that has not started after this long (seconds)",
    )
    speech_safety_timeout: float = Field(
        default=20.0,
        gt=0,
        description="Upper bound on waiting for any utterance to finish (seconds)",
    )
    source_language: str = Field(
        default="en-US",
        description="Voice language for card fronts",
    )
    source_rate: float = Field(
        default=1.0,
        gt=0,
        description="Relative speaking rate for card fronts",
    )
    source_pitch: float = Field(
        default=1.0,
        gt=0,
        description="Relative pitch for card fronts",
    )
    target_language: str = Field(
        default="es-ES",
        description="Voice language for card backs",
    )
    target_rate: float = Field(
        default=0.7,
        gt=0,
        description="Relative speaking rate for card backs",
    )
    target_pitch: float = Field(
        default=1.1,
        gt=0,
        description="Relative pitch for card backs",
    )

    # ========================================
    # Storage
    # ========================================
    data_dir: Path = Field(
        default=Path.home() / ".phrase-drill",
        description="Directory for decks and saved sessions",
    )
    storage_backend: Literal["json", "sqlite"] = Field(
        default="json",
        description="Key-value backend for decks and sessions",
    )
    deck_id: str = Field(
        default="default",
        description="Deck identity used to key persisted data",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Helper Methods
    # ========================================

    def get_manual_config(self) -> dict[str, Any]:
        """Timing for user-paced sessions."""
        return {
            "countdown_ticks": self.countdown_ticks,
            "countdown_interval": self.countdown_interval,
            "answer_settle_delay": self.answer_settle_delay,
        }

    def get_autoplay_config(self) -> dict[str, Any]:
        """Phase floors and transition delays for auto-play."""
        return {
            "phase_floors": {
                "source": self.source_phase_floor,
                "target_first": self.target_phase_floor,
                "target_repeat": self.repeat_phase_floor,
            },
            "progress_tick_interval": self.progress_tick_interval,
            "start_delay": self.autoplay_start_delay,
            "next_card_delay": self.autoplay_next_card_delay,
        }

    def get_speech_config(self) -> dict[str, Any]:
        """Narrator pacing and timeouts."""
        return {
            "backend": self.speech_backend,
            "stop_settle": self.speech_stop_settle,
            "idle_settle": self.speech_idle_settle,
            "done_grace": self.speech_done_grace,
            "start_timeout": self.speech_start_timeout,
            "safety_timeout": self.speech_safety_timeout,
        }

    def get_storage_path(self) -> Path:
        """Resolve where the configured backend keeps its data."""
        if self.storage_backend == "sqlite":
            return self.data_dir / "drill.db"
        return self.data_dir / "store"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
