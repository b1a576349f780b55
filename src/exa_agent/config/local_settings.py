"""User credential and preference store (``~/.exa/local-settings.json``).

The file holds per-backend credentials, the default backend, and MCP server
definitions. Keys are camelCase on disk. Environment variables such as
``GROQ_API_KEY`` take precedence over stored values when reading credentials.
The file is written with mode 0600 because it contains API keys.
"""

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from exa_agent.config.bootstrap import get_bootstrap_config_dir
from exa_agent.telemetry import get_logger

log = get_logger(__name__)

LOCAL_SETTINGS_FILE = "local-settings.json"

# Environment variables consulted before the settings file, per backend and field.
ENV_VARS: dict[str, dict[str, str]] = {
    "groq": {"api_key": "GROQ_API_KEY"},
    "openai": {"api_key": "OPENAI_API_KEY"},
    "azure": {
        "api_key": "AZURE_OPENAI_API_KEY",
        "endpoint": "AZURE_OPENAI_ENDPOINT",
        "deployment_name": "AZURE_OPENAI_DEPLOYMENT_NAME",
        "api_version": "AZURE_OPENAI_API_VERSION",
    },
    "anthropic": {"api_key": "ANTHROPIC_API_KEY"},
    "openrouter": {"api_key": "OPENROUTER_API_KEY"},
    "ollama": {"endpoint": "OLLAMA_ENDPOINT"},
}


class LocalSettingsError(Exception):
    """Raised when the local settings file cannot be written."""

    pass


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class BackendCredentials(_CamelModel):
    """Stored configuration for one backend."""

    api_key: str | None = None
    endpoint: str | None = None
    deployment_name: str | None = None
    api_version: str | None = None
    default_model: str | None = None


class MCPServerConfig(_CamelModel):
    """Definition of one MCP server."""

    transport: Literal["stdio", "sse", "http"] = "stdio"
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    url: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    enabled: bool = True
    timeout: float | None = Field(default=None, gt=0, description="Seconds; overrides global")


class MCPSettings(_CamelModel):
    """MCP section of the settings file."""

    servers: dict[str, MCPServerConfig] = Field(default_factory=dict)
    global_timeout: float | None = Field(default=None, gt=0)


class LocalSettingsData(_CamelModel):
    """Validated contents of the settings file."""

    default_provider: str | None = None
    default_model: str | None = None
    providers: dict[str, BackendCredentials] = Field(default_factory=dict)
    mcp: MCPSettings = Field(default_factory=MCPSettings)


class LocalSettings:
    """Reads and writes the user settings file.

    Every accessor re-reads the file so that two processes sharing one home
    directory see each other's ``/login`` changes.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or (get_bootstrap_config_dir() / LOCAL_SETTINGS_FILE)

    def read(self) -> LocalSettingsData:
        """Load the settings file.

        Returns:
            Parsed settings. A missing, unreadable or invalid file yields empty settings.
        """
        if not self.path.exists():
            return LocalSettingsData()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return LocalSettingsData.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            log.warning("local_settings_unreadable", path=str(self.path), error=str(e))
            return LocalSettingsData()

    def write(self, data: LocalSettingsData) -> None:
        """Persist settings with owner-only permissions.

        Raises:
            LocalSettingsError: If the file cannot be written.
        """
        payload = data.model_dump(by_alias=True, exclude_none=True, exclude_defaults=True)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            # Tighten permissions when the file already existed
            os.chmod(self.path, 0o600)
        except OSError as e:
            raise LocalSettingsError(f"Failed to save settings to {self.path}: {e}") from e

    # Backends

    def get_default_backend(self) -> str | None:
        return self.read().default_provider

    def set_default_backend(self, backend: str) -> None:
        data = self.read()
        data.default_provider = backend
        self.write(data)

    def get_backend_config(self, backend: str) -> BackendCredentials:
        """Merge environment overrides over the stored configuration for ``backend``."""
        stored = self.read().providers.get(backend, BackendCredentials())
        merged = stored.model_copy()
        for field, env_name in ENV_VARS.get(backend, {}).items():
            value = os.getenv(env_name)
            if value:
                setattr(merged, field, value)
        return merged

    def get_api_key(self, backend: str) -> str | None:
        return self.get_backend_config(backend).api_key

    def update_backend(self, backend: str, **fields: Any) -> None:
        """Set stored fields (``api_key``, ``endpoint``, ``default_model`` ...) for a backend."""
        data = self.read()
        current = data.providers.get(backend, BackendCredentials())
        data.providers[backend] = current.model_copy(update=fields)
        self.write(data)
        log.info("local_settings_updated", backend=backend, fields=sorted(fields))

    def clear_api_key(self, backend: str) -> None:
        data = self.read()
        creds = data.providers.get(backend)
        if creds is None or creds.api_key is None:
            return
        creds.api_key = None
        if creds.model_dump(exclude_none=True) == {}:
            del data.providers[backend]
        self.write(data)

    # MCP

    def get_mcp_settings(self) -> MCPSettings:
        return self.read().mcp

    def add_mcp_server(self, name: str, server: MCPServerConfig) -> None:
        data = self.read()
        data.mcp.servers[name] = server
        self.write(data)

    def remove_mcp_server(self, name: str) -> bool:
        data = self.read()
        if name not in data.mcp.servers:
            return False
        del data.mcp.servers[name]
        self.write(data)
        return True

    def set_mcp_server_enabled(self, name: str, enabled: bool) -> bool:
        data = self.read()
        server = data.mcp.servers.get(name)
        if server is None:
            return False
        server.enabled = enabled
        self.write(data)
        return True
