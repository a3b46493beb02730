import os
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from core.logging_utils import log_json
from core.exceptions import ConfigurationError

# ---------------------------------------------------------------------------
# Value validators — each returns (is_valid: bool, coerced_value, reason: str)
# ---------------------------------------------------------------------------

def _validate_positive_int(key: str, val: Any) -> Tuple[bool, Any, str]:
    try:
        v = int(val)
        if v > 0:
            return True, v, ""
        return False, None, f"{key} must be a positive integer, got {val!r}"
    except (ValueError, TypeError):
        return False, None, f"{key} must be an integer, got {val!r}"


def _validate_non_negative_int(key: str, val: Any) -> Tuple[bool, Any, str]:
    try:
        v = int(val)
        if v >= 0:
            return True, v, ""
        return False, None, f"{key} must be >= 0, got {val!r}"
    except (ValueError, TypeError):
        return False, None, f"{key} must be an integer, got {val!r}"


def _validate_bool(key: str, val: Any) -> Tuple[bool, Any, str]:
    if isinstance(val, bool):
        return True, val, ""
    if isinstance(val, str) and val.lower() in ("true", "false", "1", "0", "yes", "no"):
        return True, val.lower() in ("true", "1", "yes"), ""
    return False, None, f"{key} must be a boolean, got {val!r}"


def _validate_string(key: str, val: Any) -> Tuple[bool, Any, str]:
    if val is None or isinstance(val, str):
        return True, val, ""
    return False, None, f"{key} must be a string, got {val!r}"


def _validate_float_range(key: str, val: Any, lo: float, hi: float) -> Tuple[bool, Any, str]:
    try:
        v = float(val)
        if lo <= v <= hi:
            return True, v, ""
        return False, None, f"{key} must be in [{lo}, {hi}], got {val!r}"
    except (ValueError, TypeError):
        return False, None, f"{key} must be a number, got {val!r}"


# Key → validator function (None = no validation, just pass through)
_KEY_VALIDATORS = {
    "model_name":          lambda k, v: _validate_string(k, v),
    "api_key":             lambda k, v: _validate_string(k, v),
    "api_base_url":        lambda k, v: _validate_string(k, v),
    "max_retries":         lambda k, v: _validate_non_negative_int(k, v),
    "initial_retry_delay": lambda k, v: _validate_float_range(k, v, 0.0, 60.0),
    "llm_timeout":         lambda k, v: _validate_positive_int(k, v),
    "temperature":         lambda k, v: _validate_float_range(k, v, 0.0, 2.0),
    "top_p":               lambda k, v: _validate_float_range(k, v, 0.0, 1.0),
    "max_output_tokens":   lambda k, v: _validate_positive_int(k, v),
    "max_iterations":      lambda k, v: _validate_non_negative_int(k, v),
    "strict_mode":         lambda k, v: _validate_bool(k, v),
    "project_type":        lambda k, v: _validate_string(k, v),
    "log_max_entries":     lambda k, v: _validate_positive_int(k, v),
}

DEFAULT_CONFIG = {
    "model_name": "gemini-2.0-flash-exp",
    "api_key": None,
    "api_base_url": "https://generativelanguage.googleapis.com/v1beta",
    "max_retries": 3,
    "initial_retry_delay": 1.0,
    "llm_timeout": 60,
    "temperature": 0.7,
    "top_p": 0.95,
    "max_output_tokens": 8192,
    "max_iterations": 2,
    "strict_mode": False,
    "project_type": "web",
    "log_max_entries": 1000,
}


@dataclass(frozen=True)
class RetrySettings:
    """Backoff policy for rate-limited (HTTP 429) calls."""
    max_retries: int = 3
    initial_delay: float = 1.0  # seconds, doubled after every 429


@dataclass(frozen=True)
class ModelSettings:
    """Everything the model adapter needs; passed explicitly, never looked up."""
    api_key: Optional[str]
    model_name: str = DEFAULT_CONFIG["model_name"]
    api_base_url: str = DEFAULT_CONFIG["api_base_url"]
    timeout: float = 60
    temperature: float = 0.7
    top_p: float = 0.95
    max_output_tokens: int = 8192
    retry: RetrySettings = RetrySettings()


class ConfigManager:
    """
    Centralized configuration manager for CodeVibe.
    Enforces a tiered strategy: (Overrides > ENV > JSON > Defaults).
    """
    def __init__(self, config_file="codevibe.config.json", overrides: Optional[Dict[str, Any]] = None):
        self.config_file = Path(config_file)
        self.runtime_overrides = overrides or {}
        self.file_config = {}
        self.effective_config = {}

        self.refresh()

    def _load_from_file(self) -> Dict[str, Any]:
        if not self.config_file.exists():
            return {}
        try:
            with open(self.config_file, 'r') as f:
                data = json.load(f)
                log_json("INFO", "config_loaded_from_file", details={"path": str(self.config_file)})
        except json.JSONDecodeError as e:
            log_json("ERROR", "config_parse_failed", details={"error": str(e)})
            raise ConfigurationError(f"Failed to parse config file: {e}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {self.config_file} must contain a JSON object")
        return data

    def _load_from_env(self) -> Dict[str, Any]:
        env_config = {}

        env_mappings = {
            "GEMINI_API_KEY": "api_key",
            "CODEVIBE_API_KEY": "api_key",
            "CODEVIBE_MODEL": "model_name",
        }

        for env_key, config_key in env_mappings.items():
            if env_key in os.environ:
                env_config[config_key] = os.environ[env_key]

        # Standard CODEVIBE_* overrides for all keys in DEFAULT_CONFIG
        for key in DEFAULT_CONFIG:
            env_key = f"CODEVIBE_{key.upper()}"
            if env_key in os.environ:
                val = os.environ[env_key]
                try:
                    default = DEFAULT_CONFIG[key]
                    if isinstance(default, bool):
                        env_config[key] = val.lower() in ("true", "1", "yes")
                    elif isinstance(default, int):
                        env_config[key] = int(val)
                    elif isinstance(default, float):
                        env_config[key] = float(val)
                    else:
                        env_config[key] = val
                except (ValueError, TypeError):
                    log_json("WARN", "config_env_coercion_failed", details={"key": key, "val": val})
                    # Skip this key, let it fall back to JSON/Default
                    continue

        return env_config

    def refresh(self):
        """Re-evaluates the effective configuration based on the tier hierarchy."""
        self.file_config = self._load_from_file()
        env_config = self._load_from_env()

        # Merge hierarchy: Defaults < JSON < ENV < Overrides
        merged = DEFAULT_CONFIG.copy()
        merged.update(self.file_config)
        merged.update(env_config)
        merged.update(self.runtime_overrides)

        self.effective_config = merged

    def _validate_value(self, key: str, value: Any) -> Any:
        """Validate *value* for *key*; return coerced value or DEFAULT_CONFIG fallback on error."""
        validator = _KEY_VALIDATORS.get(key)
        if validator is None:
            return value
        ok, coerced, reason = validator(key, value)
        if ok:
            return coerced
        default = DEFAULT_CONFIG.get(key)
        log_json("ERROR", "config_value_invalid",
                 details={"key": key, "value": value, "reason": reason,
                          "fallback": default})
        return default

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieves a configuration value from the effective config."""
        val = self.effective_config.get(key, default)
        return self._validate_value(key, val) if key in _KEY_VALIDATORS else val

    def show_config(self) -> Dict[str, Any]:
        """Return the effective config dict (for ``codevibe config`` / diagnostics)."""
        return {key: self.get(key) for key in self.effective_config}

    def set_runtime_override(self, key: str, value: Any):
        """Sets a temporary runtime override."""
        self.runtime_overrides[key] = value
        self.refresh()

    def persist_to_file(self, key: str, value: Any):
        """Sets a configuration value and persists it to the JSON config file."""
        self.file_config[key] = value
        try:
            with open(self.config_file, 'w') as f:
                json.dump(self.file_config, f, indent=4)
        except OSError as e:
            log_json("ERROR", "config_save_failed", details={"error": str(e)})
            raise ConfigurationError(f"Failed to save config: {e}") from e
        log_json("INFO", "config_persisted", details={"key": key})
        self.refresh()

    def retry_settings(self) -> RetrySettings:
        return RetrySettings(
            max_retries=self.get("max_retries"),
            initial_delay=self.get("initial_retry_delay"),
        )

    def model_settings(self) -> ModelSettings:
        """Snapshot the effective config into an immutable :class:`ModelSettings`."""
        return ModelSettings(
            api_key=self.get("api_key") or None,
            model_name=self.get("model_name") or DEFAULT_CONFIG["model_name"],
            api_base_url=(self.get("api_base_url") or DEFAULT_CONFIG["api_base_url"]).rstrip("/"),
            timeout=self.get("llm_timeout"),
            temperature=self.get("temperature"),
            top_p=self.get("top_p"),
            max_output_tokens=self.get("max_output_tokens"),
            retry=self.retry_settings(),
        )

