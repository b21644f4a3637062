#!/usr/bin/env python3

import os
import json
import tomllib
import logging
import sys
from copy import deepcopy
from pathlib import Path

import yaml

from .exit_codes import ConfigError

logger = logging.getLogger("imageprune")

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# CLI level names -> logging levels
LOG_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. IMAGEPRUNE_CONFIG environment variable
    2. ~/.imageprune/ directory
    """
    if 'IMAGEPRUNE_CONFIG' in os.environ:
        return Path(os.environ['IMAGEPRUNE_CONFIG']).expanduser()

    config_dir = Path.home() / '.imageprune'
    for filename in CONFIG_FILENAMES:
        path = config_dir / filename
        if path.exists():
            return path

    return config_dir / 'config.json'


def get_default_config():
    """Get default configuration."""
    return {
        "github": {
            "token": "",
            "api_url": "https://api.github.com",
        },
        "registry": {
            "url": "https://ghcr.io",
        },
        "prune": {
            "jobs": 1,
            "dry_run": False,
        },
        "retention": {
            "min_age_days": 1,
            "max_age_days": 365,
        },
        "http": {
            "timeout": 30,
            "retries": 3,
        },
        "logging": {
            "level": "info",
            "format": "%(levelname)s: %(message)s",
        },
    }


def _read_config_file(config_path: Path) -> dict:
    suffix = config_path.suffix.lower()
    try:
        if suffix == '.toml':
            with open(config_path, 'rb') as f:
                return tomllib.load(f)
        with open(config_path, 'r') as f:
            if suffix in ['.yaml', '.yml']:
                return yaml.safe_load(f) or {}
            # Default to JSON format
            return json.load(f)
    except (OSError, json.JSONDecodeError, tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading config from {config_path}: {e}") from e


def load_config():
    """Load configuration: defaults, then config file, then environment."""
    config_path = get_config_path()
    config = get_default_config()

    if config_path.exists():
        file_config = _read_config_file(config_path)
        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")
        config = merge_configs(config, file_config)
        logger.debug(f"Loaded config from {config_path}")

    return apply_env_overrides(config)


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = deepcopy(base_config)

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: IMAGEPRUNE_SECTION_KEY
    For example: IMAGEPRUNE_RETENTION_MAX_AGE_DAYS=180
    """
    env_prefix = "IMAGEPRUNE_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        # Convert value
        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts = config_key.split('_')
                if key_parts[i : i + len(config_key_parts)] == config_key_parts:
                    if len(config_key_parts) > best_match_len:
                        best_match_len = len(config_key_parts)
                        matched_key = config_key

            if not matched_key:
                break

            if i + best_match_len == len(key_parts):
                current_level[matched_key] = typed_value
                break

            if isinstance(current_level[matched_key], dict):
                current_level = current_level[matched_key]
                i += best_match_len
            else:
                # Path conflict: env var is longer than the config key
                break

    return config


def redact_config(config):
    """Copy of config safe to print (token masked)."""
    redacted = deepcopy(config)
    github = redacted.get("github")
    if isinstance(github, dict) and github.get("token"):
        github["token"] = "***"
    return redacted


def configure_logging(level="info", fmt="%(levelname)s: %(message)s"):
    """
    Configure the imageprune logger to write to stderr.

    Args:
        level: One of LOG_LEVELS' names
        fmt: logging format string

    Returns:
        The configured 'imageprune' logger
    """
    if level not in LOG_LEVELS:
        raise ConfigError(f"Unknown log level {level!r}, expected one of {', '.join(LOG_LEVELS)}")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))

    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(LOG_LEVELS[level])
    logger.propagate = False
    return logger
