"""Configuration loading for the beacon responder.

Brief:
  Reads a YAML file (or takes an already-parsed mapping), applies
  environment overrides and validates the result into a ResponderConfig.

Inputs:
  - YAML config paths or dicts, optional environment mapping

Outputs:
  - ResponderConfig instances
"""

from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .config_schema import ResponderConfig

# Environment variable -> (section, key) it overrides.
ENV_OVERRIDES = {
    "BEACON_HOSTNAME": ("host", "hostname"),
    "BEACON_HOST_ADDRESS": ("host", "address"),
    "BEACON_INTERFACE": ("transport", "interface"),
    "BEACON_LOG_LEVEL": ("logging", "level"),
}


def apply_env_overrides(
    cfg: Dict[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Brief: Overlay BEACON_* environment variables onto a config mapping.

    Inputs:
      - cfg: Parsed configuration mapping (mutated in-place).
      - environ: Optional environment mapping (defaults to os.environ).

    Outputs:
      - dict: The same mapping, for chaining.

    Example:
      >>> apply_env_overrides({}, {"BEACON_HOSTNAME": "box"})
      {'host': {'hostname': 'box'}}
    """

    env = os.environ if environ is None else environ
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value is None or not str(value).strip():
            continue
        sub = cfg.get(section)
        if sub is None:
            sub = {}
            cfg[section] = sub
        elif not isinstance(sub, dict):
            raise ConfigError("config.%s must be a mapping when present" % section)
        sub[key] = str(value).strip()
    return cfg


def load_config(
    cfg: Optional[Mapping[str, Any]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> ResponderConfig:
    """Brief: Validate a configuration mapping into a ResponderConfig.

    Inputs:
      - cfg: mapping (may be None or empty for all defaults).
      - environ: optional environment mapping for BEACON_* overrides.

    Outputs:
      - ResponderConfig.

    Raises:
      - ConfigError: When the mapping does not match the schema.
    """

    if cfg is not None and not isinstance(cfg, Mapping):
        raise ConfigError("Configuration root must be a mapping")
    data: Dict[str, Any] = {
        k: (dict(v) if isinstance(v, Mapping) else v) for k, v in (cfg or {}).items()
    }
    apply_env_overrides(data, environ)
    try:
        return ResponderConfig(**data)
    except ValidationError as e:
        raise ConfigError("invalid configuration: %s" % e) from e


def parse_config_file(
    config_path: str,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> ResponderConfig:
    """Brief: Read, env-merge and validate a YAML config file.

    Inputs:
      - config_path: Path to the YAML configuration file.
      - environ: optional environment mapping for BEACON_* overrides.

    Outputs:
      - ResponderConfig.

    Raises:
      - ConfigError: When the file cannot be read, is not YAML, or fails
        validation.
    """

    try:
        with open(config_path, "r") as f:
            cfg = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError("cannot read %s: %s" % (config_path, e)) from e
    except yaml.YAMLError as e:
        raise ConfigError("cannot parse %s: %s" % (config_path, e)) from e

    if not isinstance(cfg, dict):
        raise ConfigError("Configuration root must be a mapping")
    return load_config(cfg, environ=environ)
