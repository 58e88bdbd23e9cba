"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_optional_float(value: str) -> Optional[float]:
    value = value.strip().lower()
    if value in ('', 'none', '0'):
        return None
    return float(value)


@dataclass
class Config:
    """
    Discovery configuration.

    Configuration priority (highest to lowest):
    1. Command line options
    2. Environment variables (WITRANSFER_*)
    3. Config file (JSON)
    4. Default values
    """
    # Network
    host: str = '0.0.0.0'
    port: int = 54321
    broadcast_address: str = '255.255.255.255'
    reuse_address: bool = False
    local_address: Optional[str] = None  # Detected when not set

    # Timing (seconds)
    announce_interval: float = 2.0
    read_timeout: float = 50.0
    peer_ttl: Optional[float] = None  # Peers never expire when not set

    # Limits
    buffer_size: int = 4096
    queue_size: int = 64

    # Identity
    display_name: Optional[str] = None

    # Logging
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        # Network
        config.host = os.getenv('WITRANSFER_HOST', config.host)
        config.port = int(os.getenv('WITRANSFER_PORT', config.port))
        config.broadcast_address = os.getenv('WITRANSFER_BROADCAST', config.broadcast_address)
        config.reuse_address = _env_bool(os.getenv('WITRANSFER_REUSE_ADDRESS', 'false'))
        config.local_address = os.getenv('WITRANSFER_LOCAL_ADDRESS') or None

        # Timing
        config.announce_interval = float(
            os.getenv('WITRANSFER_ANNOUNCE_INTERVAL', config.announce_interval)
        )
        config.read_timeout = float(os.getenv('WITRANSFER_READ_TIMEOUT', config.read_timeout))
        ttl = os.getenv('WITRANSFER_PEER_TTL')
        if ttl is not None:
            config.peer_ttl = _env_optional_float(ttl)

        # Limits
        config.buffer_size = int(os.getenv('WITRANSFER_BUFFER_SIZE', config.buffer_size))
        config.queue_size = int(os.getenv('WITRANSFER_QUEUE_SIZE', config.queue_size))

        # Identity
        config.display_name = os.getenv('WITRANSFER_NAME') or None

        # Logging
        config.log_level = os.getenv('WITRANSFER_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()
        known = {f.name for f in fields(cls)}
        for key, value in data.items():
            if key in known:
                setattr(config, key, value)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    # Start with defaults
    config = Config()

    # Load from file if provided
    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    # Override with environment variables
    env_config = Config.from_env()

    # Merge (env takes precedence for non-default values)
    defaults = Config()
    for f in fields(Config):
        env_val = getattr(env_config, f.name)
        if env_val != getattr(defaults, f.name):
            setattr(config, f.name, env_val)

    return config


# Example config file template
EXAMPLE_CONFIG = """
{
  "host": "0.0.0.0",
  "port": 54321,
  "broadcast_address": "255.255.255.255",
  "announce_interval": 2.0,
  "read_timeout": 50.0,
  "peer_ttl": null,
  "queue_size": 64,
  "display_name": "Alice",
  "log_level": "INFO"
}
"""
