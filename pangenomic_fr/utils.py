# pangenomic_fr/utils.py
"""
Utility functions for configuration loading, logging setup and time formatting.
"""

import argparse
import json
import logging
import sys
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .config import FRFinderConfig
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Configure root logging to stdout and, when given, a log file."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )


def config_field_names():
    return {f.name for f in fields(FRFinderConfig) if f.init}


def read_config_values(config_path: str) -> Dict[str, Any]:
    """
    Read finder parameters from a YAML or JSON file.

    Keys may sit at the top level or under a "finder" section. Unknown keys
    are logged and dropped.
    """
    path = Path(config_path)
    if not path.is_file():
        raise ConfigurationError("Config file does not exist", str(path))
    with path.open('r') as f:
        try:
            if path.suffix.lower() == '.json':
                config_dict = json.load(f)
            else:
                config_dict = yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError("Invalid config file", f"{path}: {e}") from e
    if config_dict is None:
        return {}
    if not isinstance(config_dict, dict):
        raise ConfigurationError("Config file must hold a mapping", str(path))
    if 'finder' in config_dict:
        config_dict = config_dict['finder'] or {}

    known = config_field_names()
    values = {}
    for key, value in config_dict.items():
        if key in known:
            values[key] = value
        else:
            logger.warning(f"Unknown configuration parameter: {key}")
    return values


def load_config_file(config_path: str, **overrides) -> FRFinderConfig:
    """Load configuration from a YAML or JSON file, with keyword overrides applied on top."""
    values = read_config_values(config_path)
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return FRFinderConfig(**values)
    except TypeError as e:
        raise ConfigurationError("Incomplete configuration", str(e)) from e


def create_config_from_args(args: argparse.Namespace, config_path: Optional[str] = None) -> FRFinderConfig:
    """Create configuration from command line arguments, over a config file when given."""
    values = read_config_values(config_path) if config_path else {}

    # Unset arguments (None, including flags) leave file values alone
    for name in config_field_names():
        value = getattr(args, name, None)
        if value is not None:
            values[name] = value

    if 'alpha' not in values or 'kappa' not in values:
        raise ConfigurationError("alpha and kappa are required")
    return FRFinderConfig(**values)


def format_time(seconds: float) -> str:
    """Format elapsed seconds as HH:MM:SS."""
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
