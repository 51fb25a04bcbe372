"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Herd health server and analytics configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; there is no auth layer in front of the tools.
    herd_host: str = "127.0.0.1"
    herd_port: int = 8001
    herd_log_level: str = "info"
    herd_allow_insecure_bind: bool = False

    # Storage (health record bank)
    db_path: str = "~/.herdhealth/herd.db"

    # Encryption for free-text clinical notes
    encryption_key: str = ""

    # Disease reference catalog; empty means the bundled YAML file
    catalog_path: str = ""

    # Observation scoring policy
    score_base: int = 100
    score_severity_penalty: int = 10
    score_symptom_penalty: int = 5
    score_body_condition_bonus: int = 10
    score_body_condition_threshold: int = 4  # on the 1-5 scale
    score_neutral: float = 50.0
    score_window: int = 5

    # Feed efficiency policy
    fcr_optimum: float = 2.0
    fcr_penalty: float = 10.0
    cost_optimum: float = 1.0
    cost_penalty: float = 20.0

    # Trend classification
    trend_band: float = 0.05
    trend_window: int = 3

    # Alerts
    vaccination_lead_days: int = 7
    routine_check_days: int = 30
    upcoming_vaccination_days: int = 30


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
