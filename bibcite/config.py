import logging
import os
import re
from pathlib import Path

from dotenv import load_dotenv

# Config directory: respects XDG_CONFIG_HOME, overridable with BIBCITE_CONFIG_DIR
CONFIG_DIR = Path(
    os.environ.get("BIBCITE_CONFIG_DIR", "")
    or (
        Path(os.environ.get("XDG_CONFIG_HOME", "") or Path.home() / ".config")
        / "bibcite"
    )
)

# .env file: prefer config dir, then CWD (for dev installs)
ENV_PATH = CONFIG_DIR / ".env"
if not ENV_PATH.exists() and (Path.cwd() / ".env").exists():
    ENV_PATH = Path.cwd() / ".env"

load_dotenv(ENV_PATH)


def save_to_env(key: str, value: str) -> None:
    """Update a single key in the .env file, preserving all other content."""
    if ENV_PATH.exists():
        text = ENV_PATH.read_text()
    else:
        ENV_PATH.parent.mkdir(parents=True, exist_ok=True)
        text = ""

    pattern = rf"^{re.escape(key)}=.*$"
    replacement = f"{key}={value}"

    if re.search(pattern, text, flags=re.MULTILINE):
        text = re.sub(pattern, replacement, text, flags=re.MULTILINE)
    else:
        text = text.rstrip("\n") + f"\n{replacement}\n"

    ENV_PATH.write_text(text)
    os.environ[key] = value


# Better BibTeX local endpoint (Zotero must be running)
BBT_HOST: str = os.environ.get("BBT_HOST", "localhost").strip()
BBT_PORT: int = int(os.environ.get("BBT_PORT", "23119"))

# Frontmatter field holding "Library/Collection/Subcollection"
COLLECTION_FIELD: str = os.environ.get("COLLECTION_FIELD", "zotero_collection").strip()

# "json" (CSL-JSON) or "jzon" (Better BibTeX JSON)
EXPORT_FORMAT: str = os.environ.get("EXPORT_FORMAT", "json").strip()

# "references" or "bibliography"
DEFAULT_VIEW_MODE: str = os.environ.get("DEFAULT_VIEW_MODE", "references").strip().lower()

# What to do when two siblings share a name: "first" match wins, or "error"
AMBIGUOUS_NAMES: str = os.environ.get("AMBIGUOUS_NAMES", "first").strip().lower()

ATTACHMENT_WORKERS: int = int(os.environ.get("ATTACHMENT_WORKERS", "4"))

# Seconds to reuse the library/collection tree; 0 refetches every time
LIBRARY_CACHE_TTL: float = float(os.environ.get("LIBRARY_CACHE_TTL", "0"))

HTTP_TIMEOUT: int = int(os.environ.get("HTTP_TIMEOUT", "30"))
LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").strip().upper()

# Keys that "bibcite --set" may write to the .env file
SETTINGS = (
    "BBT_HOST", "BBT_PORT", "COLLECTION_FIELD", "EXPORT_FORMAT", "DEFAULT_VIEW_MODE",
    "AMBIGUOUS_NAMES", "ATTACHMENT_WORKERS", "LIBRARY_CACHE_TTL", "HTTP_TIMEOUT", "LOG_LEVEL",
)


def validate() -> None:
    """Warn about settings that will fall back to defaults."""
    log = logging.getLogger(__name__)
    if AMBIGUOUS_NAMES not in ("first", "error"):
        log.warning("AMBIGUOUS_NAMES must be 'first' or 'error', got '%s'", AMBIGUOUS_NAMES)
    if DEFAULT_VIEW_MODE not in ("references", "bibliography"):
        log.warning(
            "DEFAULT_VIEW_MODE must be 'references' or 'bibliography', got '%s'",
            DEFAULT_VIEW_MODE,
        )
    if EXPORT_FORMAT not in ("json", "jzon"):
        log.warning("EXPORT_FORMAT '%s' is not a JSON export, expected json or jzon", EXPORT_FORMAT)
    if ATTACHMENT_WORKERS < 1:
        log.warning("ATTACHMENT_WORKERS must be at least 1, got %d", ATTACHMENT_WORKERS)


def base_url() -> str:
    return f"http://{BBT_HOST}:{BBT_PORT}"


def rpc_url() -> str:
    return f"{base_url()}/better-bibtex/json-rpc"


def setup_logging() -> None:
    """Configure logging. Call once at each entry point."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
