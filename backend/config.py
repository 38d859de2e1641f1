import json
import os
import logging

from pydantic import ValidationError

from errors import ConfigLoadError, ConfigParseError
from models import ConfigFile

logger = logging.getLogger("NetProbe.Config")

CONFIG_PATH = os.getenv("MONITORING_CONFIG", "monitoring_config.json")


def load_config(path: str = CONFIG_PATH) -> ConfigFile:
    """
    Read and validate the monitoring configuration document.

    The document is read once at startup. Both failure modes are fatal:
    ConfigLoadError when the file cannot be read, ConfigParseError when it is
    not JSON or does not match the schema.
    """
    try:
        with open(path, "r") as f:
            raw = f.read()
    except OSError as e:
        raise ConfigLoadError(f"Cannot read config file {path}", cause=e) from e
    logger.info(f"Found {path}")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigParseError(f"Config file {path} is not valid JSON", cause=e) from e

    try:
        config = ConfigFile.model_validate(data)
    except ValidationError as e:
        raise ConfigParseError(f"Config file {path} does not match the schema", cause=e) from e

    logger.info(f"Parsed {path}: {len(config.monitors)} monitors, source '{config.local.source_name}'")
    return config
