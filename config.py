import tomllib
import shutil
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv
import os

CONFIG_DIR = Path.home() / ".kioku"
CONFIG_PATH = CONFIG_DIR / "config.toml"
PROJECT_CONFIG_EXAMPLE = Path(__file__).parent / "config.toml"

DEFAULT_SRS = {
    "initial_interval": {"value": 1, "unit": "days"},
    "second_interval": {"value": 6, "unit": "days"},
    "lapse_interval": {"value": 10, "unit": "minutes"},
    "required_streak": 2,
    "penalty": 2,
}

def load_config() -> Dict[str, Any]:
    """Load config from ~/.kioku/config.toml, copy example if missing, load .env overrides."""
    load_dotenv()  # Load .env for overrides (e.g., KIOKU_LOG_LEVEL env var)
    if not CONFIG_PATH.exists():
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        shutil.copy(PROJECT_CONFIG_EXAMPLE, CONFIG_PATH)
    with open(CONFIG_PATH, "rb") as f:
        config = tomllib.load(f)

    srs_cfg = config.get("srs", {})
    srs = {}
    for key, default in DEFAULT_SRS.items():
        value = srs_cfg.get(key, default)
        if isinstance(default, dict):
            value = {**default, **(value if isinstance(value, dict) else {})}
        srs[key] = value
    config["srs"] = srs

    session_cfg = config.get("session", {})
    config["session"] = {
        "shuffle": os.getenv(
            "KIOKU_SHUFFLE",
            str(session_cfg.get("shuffle", True))
        ).lower() == "true",
        "auto_advance_seconds": float(os.getenv(
            "KIOKU_AUTO_ADVANCE_SECONDS",
            session_cfg.get("auto_advance_seconds", 0)
        )),
    }
    logging_cfg = config.get("logging", {})
    config["logging"] = {
        "level": os.getenv("KIOKU_LOG_LEVEL", logging_cfg.get("level", "INFO")).upper(),
    }
    return config

def get_config_value(section: str, key: str, default: Optional[Any] = None) -> Any:
    """Get nested config value, e.g., get_config_value('session', 'shuffle')."""
    config = load_config()
    value = config.get(section, {}).get(key, default)
    return value
