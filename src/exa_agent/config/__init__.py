"""Unified configuration management for exa-agent.

This module integrates environment variables, ``.env`` files, the user's
local settings file and optional YAML overrides.
"""

from exa_agent.config.env_loader import Environment, get_environment, load_env_files
from exa_agent.config.loader import ConfigLoadError, load_yaml_file
from exa_agent.config.local_settings import (
    BackendCredentials,
    LocalSettings,
    LocalSettingsError,
    MCPServerConfig,
    MCPSettings,
)
from exa_agent.config.policy_loader import (
    ToolPolicyConfig,
    ToolPolicyConfigError,
    load_tool_policy_config,
)
from exa_agent.config.settings import AppConfig, get_settings, load_app_config, reset_settings

__all__ = [
    # App-level settings
    "AppConfig",
    "get_settings",
    "load_app_config",
    "reset_settings",
    "Environment",
    "get_environment",
    "load_env_files",
    # User settings file
    "LocalSettings",
    "BackendCredentials",
    "MCPServerConfig",
    "MCPSettings",
    # Configuration loaders
    "load_yaml_file",
    "load_tool_policy_config",
    "ToolPolicyConfig",
    # Exception classes
    "ConfigLoadError",
    "LocalSettingsError",
    "ToolPolicyConfigError",
]
