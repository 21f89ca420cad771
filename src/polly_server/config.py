"""
Server configuration management.

This module handles loading and accessing server configuration from multiple sources
with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/server.ini) - for static deployments
    3. Built-in defaults (lowest priority) - sensible fallbacks

Configuration is loaded once at module import time and cached. The ServerConfig
dataclass provides typed access to all settings.

Usage:
    from polly_server.config import config

    print(config.server.port)
    print(config.generation.policy)

Environment Variable Mapping:
    POLLY_HOST                      -> server.host
    POLLY_PORT                      -> server.port
    POLLY_CORS_ORIGINS              -> security.cors_origins
    POLLY_LOG_LEVEL                 -> logging.level
    POLLY_POLICY                    -> generation.policy
    POLLY_MODEL                     -> generation.model
    POLLY_LLM_URL                   -> generation.api_url
    POLLY_TIMEOUT_SECONDS           -> generation.timeout_seconds
    POLLY_REQUEST_DEADLINE_SECONDS  -> generation.request_deadline_seconds
    POLLY_CUMULATIVE                -> generation.cumulative

The LLM bearer token is never read from the config file; it comes from the
environment variable named by ``generation.api_key_env`` (default
``GROQ_API_KEY``).
"""

import configparser
import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from polly_server.generation.config import GenerationConfig, RetryPolicy

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "server.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "server.example.ini"

DEFAULT_CORS_ORIGINS = [
    "https://pollylang.app",
    "https://www.pollylang.app",
    "http://localhost:5173",
]


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


@dataclass
class ServerSettings:
    """Network server configuration."""

    host: str = "0.0.0.0"  # nosec B104 - intentional for server binding
    port: int = 8000


@dataclass
class SecuritySettings:
    """CORS configuration for the browser game client."""

    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    cors_allow_methods: list[str] = field(default_factory=lambda: ["POST", "OPTIONS"])
    cors_allow_headers: list[str] = field(default_factory=lambda: ["Content-Type"])
    cors_max_age: int = 86400


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed", "json"] = "detailed"


@dataclass
class ServerConfig:
    """
    Complete server configuration.

    Aggregates all settings sections. ``generation`` is frozen; env overrides
    replace it with a modified copy.
    """

    server: ServerSettings = field(default_factory=ServerSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    generation: GenerationConfig = field(default_factory=GenerationConfig)


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _parse_bool(value: str) -> bool:
    """Parse a string value to boolean."""
    return value.lower() in ("true", "yes", "1", "on", "enabled")


def _parse_list(value: str) -> list[str]:
    """Parse a comma-separated string to list, stripping whitespace."""
    if not value or value.strip() == "":
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _load_from_ini(parser: configparser.ConfigParser, cfg: ServerConfig) -> None:
    """Load configuration from parsed INI file into ServerConfig."""
    # Server section
    if parser.has_section("server"):
        if parser.has_option("server", "host"):
            cfg.server.host = parser.get("server", "host")
        if parser.has_option("server", "port"):
            cfg.server.port = parser.getint("server", "port")

    # Security section
    if parser.has_section("security"):
        if parser.has_option("security", "cors_origins"):
            cfg.security.cors_origins = _parse_list(parser.get("security", "cors_origins"))
        if parser.has_option("security", "cors_allow_methods"):
            cfg.security.cors_allow_methods = _parse_list(
                parser.get("security", "cors_allow_methods")
            )
        if parser.has_option("security", "cors_allow_headers"):
            cfg.security.cors_allow_headers = _parse_list(
                parser.get("security", "cors_allow_headers")
            )
        if parser.has_option("security", "cors_max_age"):
            cfg.security.cors_max_age = parser.getint("security", "cors_max_age")

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            val = parser.get("logging", "format").lower()
            if val in ("simple", "detailed", "json"):
                cfg.logging.format = val  # type: ignore[assignment]

    # Generation + fallbacks sections
    if parser.has_section("generation") or parser.has_section("fallbacks"):
        generation = dict(parser["generation"]) if parser.has_section("generation") else {}
        fallbacks = dict(parser["fallbacks"]) if parser.has_section("fallbacks") else None
        cfg.generation = GenerationConfig.from_dict(generation, fallbacks=fallbacks)


def _apply_env_overrides(cfg: ServerConfig) -> None:
    """Apply environment variable overrides to configuration."""
    # Server settings
    if env_host := os.getenv("POLLY_HOST"):
        cfg.server.host = env_host
    if env_port := os.getenv("POLLY_PORT"):
        cfg.server.port = int(env_port)

    # Security settings
    if env_cors := os.getenv("POLLY_CORS_ORIGINS"):
        cfg.security.cors_origins = _parse_list(env_cors)

    # Logging settings
    if env_log := os.getenv("POLLY_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()

    # Generation settings
    overrides: dict = {}
    if env_policy := os.getenv("POLLY_POLICY"):
        overrides["policy"] = RetryPolicy(env_policy.strip().lower())
    if env_model := os.getenv("POLLY_MODEL"):
        overrides["model"] = env_model
    if env_url := os.getenv("POLLY_LLM_URL"):
        overrides["api_url"] = env_url
    if env_timeout := os.getenv("POLLY_TIMEOUT_SECONDS"):
        overrides["timeout_seconds"] = float(env_timeout)
    if env_deadline := os.getenv("POLLY_REQUEST_DEADLINE_SECONDS"):
        overrides["request_deadline_seconds"] = float(env_deadline)
    if env_cumulative := os.getenv("POLLY_CUMULATIVE"):
        overrides["cumulative"] = _parse_bool(env_cumulative)
    if overrides:
        cfg.generation = dataclasses.replace(cfg.generation, **overrides)


def load_config(config_file: Path | None = None) -> ServerConfig:
    """
    Load configuration from all sources with proper priority.

    Priority (highest wins):
        1. Environment variables
        2. ``config_file`` if given, else config/server.ini
        3. config/server.example.ini (fallback for development)
        4. Built-in defaults

    Returns:
        ServerConfig: Fully populated configuration object.
    """
    cfg = ServerConfig()

    if config_file is None:
        if CONFIG_FILE.exists():
            config_file = CONFIG_FILE
        elif CONFIG_EXAMPLE.exists():
            # Use example as fallback for development
            config_file = CONFIG_EXAMPLE

    if config_file:
        parser = configparser.ConfigParser(interpolation=None)
        parser.read(config_file, encoding="utf-8")
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


def reload_config() -> "ServerConfig":
    """
    Reload configuration from disk and environment.

    This updates the module-level `config` singleton. It does not affect an
    application that has already been created.

    Returns:
        ServerConfig: The newly loaded configuration.
    """
    global config
    config = load_config()
    return config


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_config_status() -> dict:
    """
    Get configuration status for diagnostics.

    Returns a dictionary with configuration source information.
    """
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "policy": config.generation.policy.value,
        "api_key_present": bool(os.getenv(config.generation.api_key_env)),
        "cors_origins_count": len(config.security.cors_origins),
    }


def print_config_summary() -> None:
    """Print a summary of current configuration to stdout."""
    status = get_config_status()
    gen = config.generation
    print("\n" + "=" * 60)
    print("SERVER CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {status['config_file_path']}")
    print(f"File exists: {status['config_file_exists']}")
    if status["using_example"]:
        print("WARNING: Using example config (copy to server.ini for production)")
    print("-" * 60)
    print(f"Server:      {config.server.host}:{config.server.port}")
    print(f"CORS origins: {config.security.cors_origins}")
    print(f"Policy:      {gen.policy.value} (ceiling {gen.char_ceiling} chars)")
    print(f"Model:       {gen.model}")
    print(f"API key:     {'set' if status['api_key_present'] else 'MISSING'} ({gen.api_key_env})")
    print(f"Log level:   {config.logging.level}")
    print("=" * 60 + "\n")
