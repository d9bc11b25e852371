import os
import json

from utils.logger import get_logger

logger = get_logger("config")

VERSION = "1.4.2"

DEFAULTS = {
    "default_region": "cac1",
    "poll_interval": 2.0,
    "max_attempts": 60,
    "poll_timeout": None,
    "profile": None,
}

ENV_OVERRIDES = {
    "ZTIAWS_DEFAULT_REGION": ("default_region", str),
    "ZTIAWS_POLL_INTERVAL": ("poll_interval", float),
    "ZTIAWS_MAX_ATTEMPTS": ("max_attempts", int),
    "ZTIAWS_POLL_TIMEOUT": ("poll_timeout", float),
    "AWS_PROFILE": ("profile", str),
}


def config_path():
    return os.environ.get("ZTIAWS_CONFIG") or os.path.expanduser("~/.ztiaws/config.json")

def load_config():
    """Read the config file. A missing, unreadable or malformed file counts as empty."""
    path = config_path()
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring config file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: expected a JSON object", path)
        return {}
    return data

def save_config(data):
    path = config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)

def update_last_used(region=None, instance_id=None, profile=None):
    config = load_config()
    if region:
        config['last_region'] = region
    if instance_id:
        config['last_instance'] = instance_id
    if profile:
        config['last_profile'] = profile
    try:
        save_config(config)
    except OSError as e:
        logger.warning("Could not save %s: %s", config_path(), e)

def get_settings():
    """
    Effective settings: defaults, then the config file, then ZTIAWS_* / AWS_PROFILE
    environment variables. Invalid environment values are ignored.
    """
    settings = dict(DEFAULTS)
    config = load_config()
    settings.update({key: config[key] for key in DEFAULTS if key in config})

    for var, (key, cast) in ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if not value:
            continue
        try:
            settings[key] = cast(value)
        except ValueError:
            continue
    return settings
