"""Configuration module for cortexrpc."""

from cortexrpc.config.loader import get_config_path, load_config, save_config
from cortexrpc.config.schema import CortexConfig, CredentialsConfig

__all__ = ["CortexConfig", "CredentialsConfig", "load_config", "save_config", "get_config_path"]
