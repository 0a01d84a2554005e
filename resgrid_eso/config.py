import json
import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger("resgrid_eso.config")

# -----------------------
# Defaults
# -----------------------
ESO_GUID = "b394de98-a5b7-408d-a1f2-020eddff92b9"

DEFAULT_CONFIG: Dict[str, Any] = {
    "resgrid": {
        "base_url": "https://api.resgrid.com/api/v4",
        "events_url": "https://events.resgrid.com/eventingHub",
        "token_endpoint": "Connect/token",
        "username": "",
        "password": "",
        "timeout": 10,
    },
    "sftp": {
        "host": "sftp.esosuite.net",
        "port": 22,
        "username": "",
        "password": "",
        "remote_dir": "/incoming",
        "timeout": 30,
    },
    "sheets": {
        "sheet_id": "",
        "service_account_json": "",
        "service_account_key_path": "",
        "calls_sheet": "Call Data",
    },
    "delivery": {
        "max_retries": 5,
        "base_delay": 3.0,
        "max_delay": 60.0,
        "max_total_delay": 300.0,
        "file_naming": "incident",  # incident | timestamped
    },
    "mapping": {
        "include_guid": False,
        "selected_unit": "",
        "sort_activity": False,
        "normalize_dob": False,
    },
    "app": {
        "log_dir": "./logs",
        "debug": False,
        "days_back": 7,
        "poll_interval": 30,
        "work_dir": "./out",
    },
}

# env var -> (section, key, type)
ENV_OVERRIDES = {
    "RESGRID_USER": ("resgrid", "username", "string"),
    "RESGRID_PASS": ("resgrid", "password", "string"),
    "SFTP_HOST": ("sftp", "host", "string"),
    "SFTP_PORT": ("sftp", "port", "int"),
    "SFTP_USER": ("sftp", "username", "string"),
    "SFTP_USERNAME": ("sftp", "username", "string"),
    "SFTP_PASS": ("sftp", "password", "string"),
    "SFTP_PASSWORD": ("sftp", "password", "string"),
    "SFTP_DIR": ("sftp", "remote_dir", "string"),
    "SFTP_REMOTE_PATH": ("sftp", "remote_dir", "string"),
    "LOG_SHEET_ID": ("sheets", "sheet_id", "string"),
    "GOOGLE_SERVICE_ACCOUNT_JSON": ("sheets", "service_account_json", "string"),
    "GOOGLE_SERVICE_ACCOUNT_KEY_PATH": ("sheets", "service_account_key_path", "string"),
    "MAX_RETRIES": ("delivery", "max_retries", "int"),
    "RETRY_DELAY": ("delivery", "base_delay", "float"),
    "INCLUDE_GUID": ("mapping", "include_guid", "bool"),
    "SELECTED_UNIT": ("mapping", "selected_unit", "string"),
    "NORMALIZE_DOB": ("mapping", "normalize_dob", "bool"),
    "CALL_POLLING_INTERVAL": ("app", "poll_interval", "int"),
    "LOG_DIR": ("app", "log_dir", "string"),
    "LOGS_DIR": ("app", "log_dir", "string"),
    "DEBUG": ("app", "debug", "bool"),
}

REQUIRED = [
    ("resgrid", "username", "RESGRID_USER"),
    ("resgrid", "password", "RESGRID_PASS"),
]


def _cast_value(value: str, value_type: str) -> Any:
    if value_type == "bool":
        return value.strip().lower() in ("true", "1", "yes", "on")
    if value_type == "int":
        try:
            return int(value)
        except ValueError:
            return None
    if value_type == "float":
        try:
            return float(value)
        except ValueError:
            return None
    return value


def _copy_defaults() -> Dict[str, Any]:
    return {section: dict(values) for section, values in DEFAULT_CONFIG.items()}


# -----------------------
# Config loader
# -----------------------
def load_config(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Defaults, then a JSON file (merged per section), then environment variables."""
    cfg = _copy_defaults()
    env = os.environ if environ is None else environ

    if path:
        config_path = Path(path)
        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    user_cfg = json.load(f)
                for section, values in user_cfg.items():
                    if isinstance(values, dict) and isinstance(cfg.get(section), dict):
                        cfg[section].update(values)
                    else:
                        cfg[section] = values
            except (OSError, ValueError) as e:
                logger.error(f"Failed to read {config_path}: {e}. Using defaults.")
        else:
            logger.warning(f"{config_path} not found. Using defaults.")

    for name, (section, key, value_type) in ENV_OVERRIDES.items():
        raw = env.get(name)
        if raw is None or raw == "":
            continue
        value = _cast_value(raw, value_type)
        if value is None:
            logger.warning(f"Ignoring {name}={raw!r}: expected {value_type}")
            continue
        cfg[section][key] = value

    return cfg


def validate_config(cfg: Dict[str, Any]) -> List[str]:
    """Return the env var names of required settings that are missing."""
    missing = []
    for section, key, env_name in REQUIRED:
        if not (cfg.get(section) or {}).get(key):
            missing.append(env_name)
    return missing


def sftp_configured(cfg: Dict[str, Any]) -> bool:
    sftp = cfg.get("sftp") or {}
    return bool(sftp.get("host") and sftp.get("username") and sftp.get("password"))


def sheets_configured(cfg: Dict[str, Any]) -> bool:
    sheets = cfg.get("sheets") or {}
    return bool(sheets.get("sheet_id") and (sheets.get("service_account_json") or sheets.get("service_account_key_path")))


def describe_config(cfg: Dict[str, Any]) -> None:
    def mark(value: Any) -> str:
        return "✓ Set" if value else "✗ Missing"

    logger.info("Environment configuration:")
    logger.info(f"  RESGRID_USER: {mark(cfg['resgrid'].get('username'))}")
    logger.info(f"  RESGRID_PASS: {mark(cfg['resgrid'].get('password'))}")
    logger.info(f"  SFTP_HOST: {cfg['sftp'].get('host')}")
    logger.info(f"  SFTP_USER: {cfg['sftp'].get('username') or '✗ Missing'}")
    logger.info(f"  SFTP_DIR: {cfg['sftp'].get('remote_dir')}")
    logger.info(f"  LOG_SHEET_ID: {mark(cfg['sheets'].get('sheet_id'))}")
    logger.info(f"  INCLUDE_GUID: {cfg['mapping'].get('include_guid')}")
