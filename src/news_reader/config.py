from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from datetime import datetime
from typing import Any, Dict, Optional

# --- Configuration ---
BASE_URL = "https://newsapi.org/v2"
DEFAULT_COUNTRY = "us"
CONNECT_TIMEOUT = 10
READ_TIMEOUT = 10

CATEGORIES = (
    "business",
    "entertainment",
    "health",
    "science",
    "sports",
    "technology",
)
DEFAULT_CATEGORY = "business"

REQUEST_HEADERS = {"User-Agent": "news-reader/0.1"}
RETRY_ATTEMPTS = 2
RETRY_BACKOFF = 0.3
RETRY_STATUSES = (429, 500, 502, 503, 504)

CONFIG_PATH = os.path.expanduser("~/.config/news-reader/config.json")
DATA_DIR = os.path.join(
    os.environ.get("XDG_DATA_HOME") or os.path.expanduser("~/.local/share"),
    "news-reader",
)
BOOKMARKS_DB = os.path.join(DATA_DIR, "bookmarks.db")
SCHEMA_VERSION = 1

API_KEY_ENV = "NEWS_API_KEY"

DEFAULT_CONFIG: Dict[str, Any] = {
    "source": "newsapi",
    "sources": {
        "newsapi": {
            "api_key": "",
            "base_url": BASE_URL,
            "country": DEFAULT_COUNTRY,
            "connect_timeout": CONNECT_TIMEOUT,
            "read_timeout": READ_TIMEOUT,
        }
    },
    "bookmarks_db": BOOKMARKS_DB,
}

# --- Logging ---
logger = logging.getLogger("news")


def setup_logging(debug: bool = False) -> Optional[str]:
    """Configure logging."""
    if not debug:
        logging.basicConfig(level=logging.CRITICAL, handlers=[logging.NullHandler()])
        return None

    ts = datetime.now().strftime("%Y%m%dT%H%M%S")
    pid = os.getpid()
    debug_path = os.path.join(tempfile.gettempdir(), f"news_reader_debug_{ts}_{pid}.log")

    logging.basicConfig(
        level=logging.DEBUG,
        filename=debug_path,
        filemode="a",
        format="%(asctime)s - %(levelname)s - %(name)s - %(threadName)s - %(message)s",
    )

    logger.debug("Debug logging enabled to %s", debug_path)
    return debug_path


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def read_config_file(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Return the raw mapping stored in the config file, or ``{}``."""
    if not os.path.exists(path):
        logger.info("Config file not found at %s, using defaults.", path)
        return {}
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (IOError, json.JSONDecodeError) as e:
        logger.error("Failed to load config from %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.error("Ignoring config at %s: top level is not an object", path)
        return {}
    logger.info("Loaded config from %s", path)
    return data


def load_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Load the config file merged over the defaults.

    A missing or unreadable file yields the defaults, and so does a
    ``sources`` section (or source entry) that is not an object.
    ``NEWS_API_KEY`` in the environment overrides the key from the file.
    """
    config = _merge(copy.deepcopy(DEFAULT_CONFIG), read_config_file(path))

    sources = config.get("sources")
    if not isinstance(sources, dict):
        logger.error("Ignoring 'sources' in %s: not an object", path)
        sources = config["sources"] = copy.deepcopy(DEFAULT_CONFIG["sources"])
    for name, entry in list(sources.items()):
        if not isinstance(entry, dict):
            logger.error("Ignoring source '%s' in %s: not an object", name, path)
            sources[name] = copy.deepcopy(DEFAULT_CONFIG["sources"].get(name, {}))

    env_key = os.environ.get(API_KEY_ENV, "").strip()
    if env_key:
        source_name = config.get("source", "newsapi")
        sources.setdefault(source_name, {})["api_key"] = env_key
    return config


def save_config(config: Dict[str, Any], path: str = CONFIG_PATH) -> bool:
    """Save the main configuration file. Returns False if it could not be written."""
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as f:
            json.dump(config, f, indent=2)
        logger.info("Saved config to %s", path)
        return True
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        return False
