"""
Configuration loading for FITSCORE.

Paths come from the environment (.env via python-dotenv); structured settings
come from YAML files loaded with OmegaConf. Packaged defaults live in
fitscore/config/.

Examples:
    >>> config = load_scoring_config()
    >>> config.coordinator.task_timeout_s
    120.0

    # Tighten the timeout for a single run
    >>> config = load_scoring_config(overrides={"coordinator": {"task_timeout_s": 5}})
"""

import os
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

load_dotenv()
PACKAGE_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

SCORING_CONFIG_PATH = Path(
    os.getenv("SCORING_CONFIG_PATH", str(PACKAGE_CONFIG_DIR / "scoring.yaml"))
)
WEIGHT_PROFILES_PATH = Path(
    os.getenv("WEIGHT_PROFILES_PATH", str(PACKAGE_CONFIG_DIR / "weight_profiles.yaml"))
)
DATABASE_PATH = Path(os.getenv("FITSCORE_DATABASE_PATH", "data/fitscore.sqlite"))
CLONE_DIR = Path(os.getenv("FITSCORE_CLONE_DIR", "data/contexts"))
LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))


def load_scoring_config(config_path: Path = None, overrides: Dict[str, Any] = None) -> DictConfig:
    """
    Load scoring.yaml, optionally merging overrides on top.

    Args:
        config_path: Optional path to config file (defaults to SCORING_CONFIG_PATH)
        overrides: Nested dict merged over the loaded config (later wins)

    Returns:
        OmegaConf DictConfig with coordinator, isolation, weights and batch sections
    """
    if config_path is None:
        config_path = SCORING_CONFIG_PATH

    config = OmegaConf.load(config_path)
    if overrides:
        config = OmegaConf.merge(config, OmegaConf.create(overrides))

    return config


def load_weight_profiles(config_path: Path = None) -> Dict[str, Dict[str, Dict[str, float]]]:
    """
    Load weight_profiles.yaml as plain nested dicts.

    Args:
        config_path: Optional path to profiles file (defaults to WEIGHT_PROFILES_PATH)

    Returns:
        {"industry": {...}, "role": {...}, "seniority": {...}}

    Raises:
        ValueError: If a required top-level section is missing
    """
    if config_path is None:
        config_path = WEIGHT_PROFILES_PATH

    profiles = OmegaConf.to_container(OmegaConf.load(config_path), resolve=True)

    for section in ("industry", "role", "seniority"):
        if section not in profiles:
            raise ValueError(f"Weight profiles must define '{section}' (file: {config_path})")

    return profiles
