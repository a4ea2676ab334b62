"""
Configuration management for the treecop engine.

This module provides configuration loading with sensible defaults for
rule selection, severities and per-rule options.
"""

import copy
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_NAMES = [".treecop.yml", ".treecop.yaml", "treecop.yml", "treecop.yaml"]

DEFAULTS: Dict[str, Any] = {
    "enabled_rules": ["*"],
    "disabled_rules": [],
    "max_offenses_per_file": 500,
    "exclude": ["vendor/**", "node_modules/**", "tmp/**", ".git/**"],
    "rule_severities": {},
    # Rule-specific configuration, merged over each rule's own defaults
    "rule_configs": {},
}


@dataclass
class EngineConfig:
    """Configuration for the treecop engine."""

    # Rule selection (fnmatch patterns over rule ids)
    enabled_rules: List[str] = field(default_factory=lambda: ["*"])
    disabled_rules: List[str] = field(default_factory=list)
    max_offenses_per_file: int = 500

    # Path globs skipped during file collection
    exclude: List[str] = field(default_factory=list)

    # Rule severity overrides (rule_id -> severity)
    rule_severities: Dict[str, str] = field(default_factory=dict)

    # Rule-specific configuration (rule_id -> options)
    rule_configs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def options_for(self, rule_id: str) -> Dict[str, Any]:
        return dict(self.rule_configs.get(rule_id) or {})


def load_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Load configuration from file or use defaults.

    Args:
        config_path: Path to config file (YAML). If None, uses defaults.

    Returns:
        EngineConfig instance
    """
    merged_config = copy.deepcopy(DEFAULTS)

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                file_config = yaml.safe_load(f) or {}
            if not isinstance(file_config, dict):
                raise ValueError("top-level YAML value must be a mapping")

            unknown = set(file_config) - set(DEFAULTS)
            if unknown:
                logger.warning("Ignoring unknown config keys in %s: %s",
                               config_path, ", ".join(sorted(unknown)))

            for key in DEFAULTS:
                if key in ("rule_severities", "rule_configs"):
                    continue
                if key in file_config:
                    merged_config[key] = file_config[key]

            # Deep merge rule severities
            merged_config["rule_severities"].update(file_config.get("rule_severities") or {})

            # Deep merge rule configs
            for rule_id, rule_config in (file_config.get("rule_configs") or {}).items():
                merged_config["rule_configs"].setdefault(rule_id, {}).update(rule_config or {})

            return EngineConfig(**merged_config)

        except (OSError, yaml.YAMLError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Failed to load config from %s: %s; using default configuration",
                           config_path, e)
            merged_config = copy.deepcopy(DEFAULTS)

    return EngineConfig(**merged_config)


def get_default_config() -> EngineConfig:
    """Get default configuration without loading from file."""
    return load_config(None)


def save_config(config: EngineConfig, config_path: str) -> None:
    """
    Save configuration to file.

    Args:
        config: EngineConfig to save
        config_path: Path where to save the config
    """
    config_dict = {
        "enabled_rules": config.enabled_rules,
        "disabled_rules": config.disabled_rules,
        "max_offenses_per_file": config.max_offenses_per_file,
        "exclude": config.exclude,
        "rule_severities": config.rule_severities,
        "rule_configs": config.rule_configs,
    }

    directory = os.path.dirname(config_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, indent=2, sort_keys=False)


def find_config_file(start_path: str = ".") -> Optional[str]:
    """
    Find configuration file by walking up the directory tree.

    Looks for files in this order:
    1. .treecop.yml
    2. .treecop.yaml
    3. treecop.yml
    4. treecop.yaml

    Args:
        start_path: File or directory to start searching from

    Returns:
        Path to config file or None if not found
    """
    current_path = os.path.abspath(start_path)
    if os.path.isfile(current_path):
        current_path = os.path.dirname(current_path)

    while True:
        for config_name in CONFIG_NAMES:
            config_path = os.path.join(current_path, config_name)
            if os.path.exists(config_path):
                return config_path

        parent_path = os.path.dirname(current_path)
        if parent_path == current_path:
            # Reached the root directory
            break
        current_path = parent_path

    return None


def get_rule_severity(rule_id: str, config: EngineConfig, default_severity: str = "warn") -> str:
    """
    Get the configured severity for a rule, falling back to default.

    Args:
        rule_id: Rule identifier (e.g., "layout.wrap_multiline_arguments")
        config: Engine configuration
        default_severity: Fallback severity if not configured

    Returns:
        Severity level ("info", "warn", or "error")
    """
    if config.rule_severities and rule_id in config.rule_severities:
        severity = config.rule_severities[rule_id]
        if severity in ("info", "warn", "error"):
            return severity
        logger.warning("Unknown severity '%s' configured for %s", severity, rule_id)
    return default_severity
