"""
Server Configuration Management for the portal requests server.

Handles server configuration creation, validation, environment variable
overrides, and directory structure setup for the server installation.
"""

import json
import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, List, Optional

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_CONFLUENCE_SPACES: List[Dict[str, str]] = [
    {"value": "DOCS", "label": "Documentation"},
    {"value": "KB", "label": "Knowledge Base"},
    {"value": "SUPPORT", "label": "Support"},
]


@dataclass
class JiraConfig:
    """Connection settings for the Jira host."""

    base_url: str = "http://localhost:8080"
    timeout_seconds: float = 30.0
    verify_ssl: bool = True
    login_path: str = "/login.jsp"


@dataclass
class PortalDefaultsConfig:
    """Defaults used when a scope has no usable stored configuration."""

    fallback_project_key: str = "DEMO"
    default_query_template: str = "project = {project} ORDER BY created DESC"
    # Catalog served by /settings/confluence-spaces
    confluence_spaces: Optional[List[Dict[str, str]]] = None

    def __post_init__(self):
        if self.confluence_spaces is None:
            self.confluence_spaces = [dict(space) for space in DEFAULT_CONFLUENCE_SPACES]


@dataclass
class PortalServerConfig:
    """
    Server configuration data structure.

    Contains networking, logging, Jira connection and portal default settings.
    """

    server_dir: str
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    api_prefix: str = "/rest/portal-requests/1.0"
    jira_config: Optional[JiraConfig] = None
    portal_defaults_config: Optional[PortalDefaultsConfig] = None

    def __post_init__(self):
        """Initialize nested config objects if not provided."""
        if self.jira_config is None:
            self.jira_config = JiraConfig()
        if self.portal_defaults_config is None:
            self.portal_defaults_config = PortalDefaultsConfig()

    @property
    def database_path(self) -> Path:
        return Path(self.server_dir) / "data" / "portal_settings.db"


class ServerConfigManager:
    """
    Manages portal requests server configuration.

    Handles configuration creation, validation, file persistence,
    environment variable overrides, and server directory setup.
    """

    def __init__(self, server_dir_path: Optional[str] = None):
        """
        Initialize server configuration manager.

        Args:
            server_dir_path: Path to server directory (defaults to
                PORTAL_SERVER_DATA_DIR env var or ~/.portal-requests)
        """
        if server_dir_path:
            self.server_dir = Path(server_dir_path)
        else:
            default_dir = os.environ.get(
                "PORTAL_SERVER_DATA_DIR", str(Path.home() / ".portal-requests")
            )
            self.server_dir = Path(default_dir)

        self.config_file_path = self.server_dir / "config.json"

    def create_default_config(self) -> PortalServerConfig:
        """Create default server configuration."""
        return PortalServerConfig(server_dir=str(self.server_dir))

    def save_config(self, config: PortalServerConfig) -> None:
        """
        Save configuration to file.

        Args:
            config: PortalServerConfig object to save
        """
        self.server_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_file_path, "w") as f:
            json.dump(asdict(config), f, indent=2)

    def load_config(self) -> Optional[PortalServerConfig]:
        """
        Load configuration from file.

        Returns:
            PortalServerConfig if file exists, None otherwise

        Raises:
            ValueError: If configuration file is malformed
        """
        if not self.config_file_path.exists():
            return None

        try:
            with open(self.config_file_path, "r") as f:
                config_dict = json.load(f)

            if "server_dir" not in config_dict:
                config_dict["server_dir"] = str(self.server_dir)

            if isinstance(config_dict.get("jira_config"), dict):
                config_dict["jira_config"] = JiraConfig(**config_dict["jira_config"])

            if isinstance(config_dict.get("portal_defaults_config"), dict):
                config_dict["portal_defaults_config"] = PortalDefaultsConfig(
                    **config_dict["portal_defaults_config"]
                )

            return PortalServerConfig(**config_dict)
        except (json.JSONDecodeError, TypeError) as e:
            raise ValueError(
                f"Failed to load configuration from {self.config_file_path}: {e}"
            ) from e

    def load_or_create_config(self) -> PortalServerConfig:
        """Load configuration from disk, falling back to defaults, then apply env overrides."""
        config = self.load_config() or self.create_default_config()
        return self.apply_env_overrides(config)

    def apply_env_overrides(self, config: PortalServerConfig) -> PortalServerConfig:
        """
        Apply environment variable overrides to configuration.

        Supported environment variables:
        - PORTAL_SERVER_HOST: Override host setting
        - PORTAL_SERVER_PORT: Override port setting
        - PORTAL_LOG_LEVEL: Override log level
        - PORTAL_JIRA_BASE_URL: Override Jira base URL
        - PORTAL_JIRA_TIMEOUT_SECONDS: Override Jira request timeout
        - PORTAL_FALLBACK_PROJECT_KEY: Override fallback project for the global default query
        """
        assert config.jira_config is not None  # Guaranteed by __post_init__
        assert config.portal_defaults_config is not None

        if host_env := os.environ.get("PORTAL_SERVER_HOST"):
            config.host = host_env

        if port_env := os.environ.get("PORTAL_SERVER_PORT"):
            try:
                config.port = int(port_env)
            except ValueError:
                logging.warning(
                    f"Invalid PORTAL_SERVER_PORT environment variable value '{port_env}'. Using default port {config.port}"
                )

        if log_level_env := os.environ.get("PORTAL_LOG_LEVEL"):
            config.log_level = log_level_env.upper()

        if jira_url_env := os.environ.get("PORTAL_JIRA_BASE_URL"):
            config.jira_config.base_url = jira_url_env

        if timeout_env := os.environ.get("PORTAL_JIRA_TIMEOUT_SECONDS"):
            try:
                config.jira_config.timeout_seconds = float(timeout_env)
            except ValueError:
                logging.warning(
                    f"Invalid PORTAL_JIRA_TIMEOUT_SECONDS environment variable value '{timeout_env}'. Using default {config.jira_config.timeout_seconds} seconds"
                )

        if fallback_env := os.environ.get("PORTAL_FALLBACK_PROJECT_KEY"):
            config.portal_defaults_config.fallback_project_key = fallback_env.strip()

        return config

    def validate_config(self, config: PortalServerConfig) -> None:
        """
        Validate configuration settings.

        Raises:
            ValueError: If any configuration value is invalid
        """
        assert config.jira_config is not None
        assert config.portal_defaults_config is not None

        if not 1 <= config.port <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {config.port}")

        if config.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level '{config.log_level}'. Must be one of {', '.join(VALID_LOG_LEVELS)}"
            )

        if not config.api_prefix.startswith("/") or config.api_prefix.endswith("/"):
            raise ValueError(
                f"api_prefix must start with '/' and not end with '/', got '{config.api_prefix}'"
            )

        jira = config.jira_config
        if not jira.base_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Jira base_url must be an http(s) URL, got '{jira.base_url}'"
            )
        if jira.timeout_seconds <= 0:
            raise ValueError(
                f"Jira timeout_seconds must be positive, got {jira.timeout_seconds}"
            )

        defaults = config.portal_defaults_config
        if not defaults.fallback_project_key.strip():
            raise ValueError("fallback_project_key cannot be empty")
        if "{project}" not in defaults.default_query_template:
            raise ValueError("default_query_template must contain a {project} placeholder")

        for space in defaults.confluence_spaces or []:
            if not space.get("value") or not space.get("label"):
                raise ValueError(
                    f"Confluence space entries need 'value' and 'label', got {space}"
                )

    def create_server_directories(self) -> None:
        """Create the server directory and its data subdirectory."""
        (self.server_dir / "data").mkdir(parents=True, exist_ok=True)
