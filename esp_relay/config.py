#!/usr/bin/env python3
"""
ESP Relay - Configuration

Settings come from ~/.esp-relay/config.yaml, then .env / environment
variables (RELAY_*), then command-line flags.
"""

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

DEFAULT_CONFIG_DIR = Path.home() / '.esp-relay'
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / 'config.yaml'

# environment variable -> config field
ENV_VARS = {
    'RELAY_HOST': 'host',
    'RELAY_WS_PORT': 'ws_port',
    'RELAY_HTTP_PORT': 'http_port',
    'RELAY_PUBLIC_HOST': 'public_host',
    'RELAY_LOG_LEVEL': 'log_level',
    'RELAY_OUTBOX_SIZE': 'outbox_size',
    'RELAY_PING_INTERVAL': 'ping_interval',
    'RELAY_PING_TIMEOUT': 'ping_timeout',
    'RELAY_URL': 'relay_url',
    'RELAY_API_URL': 'relay_api_url',
}


@dataclass
class RelayConfig:
    """ESP Relay configuration"""

    # Server settings
    host: str = "0.0.0.0"
    ws_port: int = 8081
    http_port: int = 8080
    public_host: str = ""  # Address shown on the control page; auto-detect if empty

    # Transport
    outbox_size: int = 256
    ping_interval: float = 20.0
    ping_timeout: float = 20.0

    # Logging
    log_level: str = "INFO"

    # Client settings
    relay_url: str = "ws://localhost:8081"
    relay_api_url: str = "http://localhost:8080"

    # Config file path (not saved to file)
    config_path: str = field(default="", repr=False)

    def save(self):
        """Save configuration to file."""
        config_path = Path(self.config_path) if self.config_path else DEFAULT_CONFIG_FILE
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(self)
        del data['config_path']

        with open(config_path, 'w') as f:
            yaml.safe_dump(data, f, default_flow_style=False)

    @classmethod
    def load(cls, config_path: Optional[str] = None,
             env: Optional[Dict[str, str]] = None) -> 'RelayConfig':
        """Load configuration from file, then apply environment overrides."""
        path = Path(config_path) if config_path else DEFAULT_CONFIG_FILE

        data: Dict[str, Any] = {}
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

        cfg = cls(**{k: v for k, v in data.items()
                     if k in cls.__dataclass_fields__ and k != 'config_path'})
        cfg.config_path = str(path)

        if env is None:
            load_dotenv(find_dotenv(usecwd=True))
            env = dict(os.environ)
        cfg.apply_env(env)
        return cfg

    def apply_env(self, env: Dict[str, str]):
        """Override fields from RELAY_* variables."""
        types = {f.name: f.type for f in fields(self)}
        for var, name in ENV_VARS.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            setattr(self, name, _coerce(var, raw, types[name]))

    @property
    def ws_url(self) -> str:
        return f"ws://{self.host}:{self.ws_port}"


def _coerce(var: str, raw: str, type_name) -> Any:
    type_name = getattr(type_name, '__name__', type_name)
    try:
        if type_name == 'int':
            return int(raw)
        if type_name == 'float':
            return float(raw)
    except ValueError:
        raise ValueError(f"{var} must be a number, got {raw!r}") from None
    return raw


# Singleton instance
_config: Optional[RelayConfig] = None


def get_config(config_path: Optional[str] = None) -> RelayConfig:
    """Get or create the global config instance."""
    global _config
    if _config is None or (config_path and config_path != _config.config_path):
        _config = RelayConfig.load(config_path)
    return _config
