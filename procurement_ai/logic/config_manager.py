"""
Configuration Manager for Procurement AI

Handles loading configuration from user-accessible config files so that
deployments can be tuned without modifying code.

Config file locations (checked in order):
1. $PROCUREMENT_AI_CONFIG
2. ./config.json (current working directory)
3. %APPDATA%/Procurement AI/config.json (Windows)
4. ~/.config/procurement-ai/config.json (Linux/Mac)

Environment variables take precedence over file values.
"""

import os
import sys
import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PROCUREMENT_AI_CONFIG"

# Default configuration template
DEFAULT_CONFIG: Dict[str, Any] = {
    "_comment": "Procurement AI Configuration - Edit this file to configure the application",
    "openai_api_key": "",
    "openai_model": "gpt-4o-mini",
    "use_llm_analysis": False,
    "llm_timeout_seconds": 30.0,
    "log_level": "INFO",
    # Business heuristics used when a corroborating file type is absent
    "manual_fallback_ratio": 0.75,
    "delay_fallback_ratio": 0.15,
    "outlier_fallback_ratio": 0.05,
    "delay_threshold_days": 30,
    "outlier_amount_threshold": 50000,
    "unconfirmed_receipt_factor": 0.8,
    "revenue_loss_ratio": 0.12,
    "waste_ratio": 0.05,
    "monthly_waste_ratio": 0.2,
    "revenue_impact_ratio": 0.5,
    "hours_per_manual_record": 0.5,
    "currency_symbol": "₹",
}

# Config key -> environment variable
ENV_MAPPINGS: Dict[str, str] = {
    "openai_api_key": "OPENAI_API_KEY",
    "openai_model": "OPENAI_MODEL",
    "use_llm_analysis": "PROCUREMENT_AI_USE_LLM",
    "log_level": "LOG_LEVEL",
}


@dataclass(frozen=True)
class AnalysisSettings:
    """Immutable business-heuristic constants for one analysis run."""
    manual_fallback_ratio: float = 0.75
    delay_fallback_ratio: float = 0.15
    outlier_fallback_ratio: float = 0.05
    delay_threshold_days: int = 30
    outlier_amount_threshold: float = 50000
    unconfirmed_receipt_factor: float = 0.8
    revenue_loss_ratio: float = 0.12
    waste_ratio: float = 0.05
    monthly_waste_ratio: float = 0.2
    revenue_impact_ratio: float = 0.5
    hours_per_manual_record: float = 0.5
    default_avg_delay_days: float = 15.0
    default_processing_days: float = 7.0
    default_vendor_churn: int = 15
    cost_increase: str = "+15%"
    currency_symbol: str = "₹"

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AnalysisSettings":
        """Build settings from a config dict, ignoring unrelated keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in config.items() if k in known}
        return cls(**values)


def get_config_paths() -> List[Path]:
    """Get list of possible config file locations, in priority order."""
    paths = []

    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        paths.append(Path(explicit))

    paths.append(Path.cwd() / "config.json")

    if sys.platform == 'win32':
        appdata = os.environ.get('APPDATA')
        if appdata:
            paths.append(Path(appdata) / "Procurement AI" / "config.json")
    else:
        paths.append(Path.home() / ".config" / "procurement-ai" / "config.json")

    return paths


def find_config_file() -> Optional[Path]:
    """Find the first existing config file."""
    for path in get_config_paths():
        if path.exists():
            logger.info(f"Found config file: {path}")
            return path
    return None


def get_default_config_path() -> Path:
    """Get the default path where config should be created."""
    if sys.platform == 'win32':
        appdata = os.environ.get('APPDATA', '')
        if appdata:
            return Path(appdata) / "Procurement AI" / "config.json"
        return Path.home() / "Procurement AI" / "config.json"
    return Path.home() / ".config" / "procurement-ai" / "config.json"


def create_config_template(path: Path) -> None:
    """Create a config template file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(DEFAULT_CONFIG, f, indent=4)
    logger.info(f"Created default config at: {path}")
    logger.info("Edit this file to add your OpenAI API key and tune heuristics")


def _coerce(value: str, default: Any) -> Any:
    """Coerce an environment string to the type of the default value."""
    if isinstance(default, bool):
        return value.strip().lower() in ('true', '1', 'yes')
    if isinstance(default, (int, float)) and not isinstance(default, bool):
        try:
            return type(default)(value)
        except ValueError:
            logger.warning(f"Ignoring non-numeric override '{value}'")
            return default
    return value


def apply_environment_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay environment variables on top of file/default values."""
    for config_key, env_key in ENV_MAPPINGS.items():
        env_value = os.environ.get(env_key)
        if env_value:
            config[config_key] = _coerce(env_value, DEFAULT_CONFIG.get(config_key, ""))
            logger.debug(f"Set {config_key} from {env_key}")
    return config


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from file.

    Returns merged config (defaults + file + environment). A missing or
    unreadable file leaves the defaults in place.
    """
    config = DEFAULT_CONFIG.copy()

    config_path = path or find_config_file()

    if config_path is not None:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = json.load(f)

            # Merge file config with defaults
            for key, value in file_config.items():
                if not key.startswith('_'):  # Skip comments
                    config[key] = value

            logger.info(f"Loaded config from: {config_path}")

        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading config from {config_path}: {e}")

    return apply_environment_overrides(config)


# Singleton config instance
_config: Optional[Dict[str, Any]] = None


def get_config() -> Dict[str, Any]:
    """Get the current config (loads if not already loaded)."""
    global _config
    if _config is None:
        _config = load_config()
        has_api_key = bool(_config.get('openai_api_key'))
        logger.info(f"Config initialized - OpenAI API key: {'configured' if has_api_key else 'NOT CONFIGURED'}")
    return _config


def reset_config() -> None:
    """Drop the cached config so the next get_config() reloads it."""
    global _config
    _config = None


def get_analysis_settings(config: Optional[Dict[str, Any]] = None) -> AnalysisSettings:
    """Get the heuristic settings from config (defaults when absent)."""
    return AnalysisSettings.from_config(config if config is not None else get_config())
