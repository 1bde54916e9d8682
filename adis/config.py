"""
Configuration management for ADIS

Loads settings from:
1. config/config.yaml (optional)
2. Environment variables (ADIS_*, .env)
3. Default values
"""

from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Load environment variables
load_dotenv()


class ADISSettings(BaseSettings):
    """Central configuration for the integrity service."""

    model_config = SettingsConfigDict(
        env_prefix="ADIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Storage ---
    storage_root: Path = Field(default=Path("uploads"))
    database_path: str = Field(default="")  # empty -> in-memory document store

    # --- Issuance ---
    base_url: str = Field(default="http://localhost:3000")
    institution_name: str = Field(default="University")

    # --- Ledger (Ethereum JSON-RPC) ---
    ledger_rpc_url: str = Field(default="")  # empty -> in-memory ledger
    ledger_contract_address: str = Field(default="")
    ledger_account: str = Field(default="")
    ledger_timeout: float = 10.0
    ledger_max_retries: int = 3
    ledger_receipt_timeout: float = 60.0
    ledger_poll_interval: float = 1.0

    # --- Tamper classification ---
    tamper_pdf_minor_ratio: float = 0.01
    tamper_binary_minor_ratio: float = 0.05
    tamper_pdf_minor_confidence: int = 70
    tamper_binary_minor_confidence: int = 85
    tamper_watermark_mismatch_confidence: int = 85
    tamper_watermark_removal_confidence: int = 95
    tamper_content_modification_confidence: int = 95

    # --- API Settings ---
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_key: str = Field(default="")
    cors_origins: str = "http://localhost:3000"  # Comma-separated string
    rate_limit_per_minute: int = 60
    rate_limit_sweep_seconds: float = 300.0
    demo_mode: bool = False

    # --- Logging ---
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def ledger_configured(self) -> bool:
        return bool(self.ledger_rpc_url and self.ledger_contract_address)

    # --- Path Helpers ---
    @property
    def originals_dir(self) -> Path:
        return self.storage_root / "originals"

    @property
    def processed_dir(self) -> Path:
        return self.storage_root / "processed"

    @property
    def watermarked_dir(self) -> Path:
        return self.storage_root / "watermarked"

    @classmethod
    def from_yaml(cls, yaml_path: str | Path = "config/config.yaml") -> "ADISSettings":
        """Load configuration from YAML file, falling back to env/defaults."""
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            return cls()

        with open(yaml_path) as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)


# Global configuration instance
_config: Optional[ADISSettings] = None


def get_config() -> ADISSettings:
    """Get global configuration instance"""
    global _config
    if _config is None:
        _config = ADISSettings.from_yaml()
    return _config


def reload_config(yaml_path: Optional[str | Path] = None) -> ADISSettings:
    """Reload configuration from file"""
    global _config
    _config = ADISSettings.from_yaml(yaml_path) if yaml_path else ADISSettings.from_yaml()
    return _config
