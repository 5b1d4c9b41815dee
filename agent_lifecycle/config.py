"""
Configuration management for the agent lifecycle service.

Supports YAML configuration with environment variable expansion.
"""

import os
import re
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Any

import yaml

from .agents.cleanup import DEFAULT_TIMEOUT, DEFAULT_INTERVAL


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "127.0.0.1"
    port: int = 8767


@dataclass
class CleanupConfig:
    """Orphaned agent cleanup configuration (milliseconds)."""
    timeout_ms: int = DEFAULT_TIMEOUT
    interval_ms: int = DEFAULT_INTERVAL
    auto_start: bool = True


@dataclass
class TelemetryConfig:
    """OpenTelemetry configuration."""
    enabled: bool = False
    service_name: str = "agent-lifecycle"
    otlp_endpoint: Optional[str] = None
    console_export: bool = False


@dataclass
class LifecycleConfig:
    """Root configuration."""
    server: ServerConfig = field(default_factory=ServerConfig)
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "INFO"


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values."""
    if isinstance(value, str):
        # Match ${VAR} or $VAR patterns
        pattern = r'\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)'

        def replace(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))

        return re.sub(pattern, replace, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(v) for v in value]
    return value


def _as_bool(value: Any) -> bool:
    # Expanded env vars arrive as strings
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def load_config(path: str | Path) -> LifecycleConfig:
    """Load configuration from YAML file."""
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    data = expand_env_vars(raw)

    server_data = data.get("server") or {}
    server = ServerConfig(
        host=server_data.get("host", "127.0.0.1"),
        port=int(server_data.get("port", 8767)),
    )

    cleanup_data = data.get("cleanup") or {}
    cleanup = CleanupConfig(
        timeout_ms=int(cleanup_data.get("timeout_ms", DEFAULT_TIMEOUT)),
        interval_ms=int(cleanup_data.get("interval_ms", DEFAULT_INTERVAL)),
        auto_start=_as_bool(cleanup_data.get("auto_start", True)),
    )
    if cleanup.interval_ms <= 0:
        raise ValueError(f"cleanup.interval_ms must be positive, got {cleanup.interval_ms}")
    if cleanup.timeout_ms < 0:
        raise ValueError(f"cleanup.timeout_ms must not be negative, got {cleanup.timeout_ms}")

    telemetry_data = data.get("telemetry") or {}
    telemetry = TelemetryConfig(
        enabled=_as_bool(telemetry_data.get("enabled", False)),
        service_name=telemetry_data.get("service_name", "agent-lifecycle"),
        otlp_endpoint=telemetry_data.get("otlp_endpoint"),
        console_export=_as_bool(telemetry_data.get("console_export", False)),
    )

    return LifecycleConfig(
        server=server,
        cleanup=cleanup,
        telemetry=telemetry,
        log_level=str(data.get("log_level", "INFO")).upper(),
    )


def create_default_config() -> str:
    """Generate default configuration YAML."""
    return """# Agent Lifecycle Configuration

server:
  host: 127.0.0.1
  port: 8767

# Orphaned agent reclamation (milliseconds)
cleanup:
  timeout_ms: 1800000   # 30 minutes without activity
  interval_ms: 300000   # scan every 5 minutes
  auto_start: true

# OpenTelemetry tracing
telemetry:
  enabled: false
  service_name: agent-lifecycle
  # otlp_endpoint: ${OTEL_EXPORTER_OTLP_ENDPOINT}
  console_export: false

log_level: INFO
"""
