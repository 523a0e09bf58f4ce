"""
Runtime settings for the preset engine service.

Values come from environment variables so the same package runs unchanged
in development, tests and deployment.
"""

import os
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "PRESET_ENGINE_"
DEFAULT_STORAGE_DIR = os.path.join(os.path.expanduser("~"), ".preset_engine")
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8188


@dataclass(frozen=True)
class Settings:
    storage_dir: str = DEFAULT_STORAGE_DIR
    log_level: str = "INFO"
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Recognised variables: ``PRESET_ENGINE_STORAGE_DIR``,
    ``PRESET_ENGINE_LOG_LEVEL``, ``PRESET_ENGINE_HOST`` and
    ``PRESET_ENGINE_PORT``. An unparseable port falls back to the default.
    """
    environ = os.environ if environ is None else environ

    port = DEFAULT_PORT
    raw_port = environ.get(f"{ENV_PREFIX}PORT")
    if raw_port:
        try:
            port = int(raw_port)
        except ValueError:
            logger.warning(f"Invalid {ENV_PREFIX}PORT {raw_port!r}, using {DEFAULT_PORT}")

    return Settings(
        storage_dir=os.path.abspath(environ.get(f"{ENV_PREFIX}STORAGE_DIR") or DEFAULT_STORAGE_DIR),
        log_level=(environ.get(f"{ENV_PREFIX}LOG_LEVEL") or "INFO").upper(),
        host=environ.get(f"{ENV_PREFIX}HOST") or DEFAULT_HOST,
        port=port,
    )
