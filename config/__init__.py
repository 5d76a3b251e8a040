"""Configuration management for the anonymous voting system."""

from .config import ProtocolConfig, SystemConfig, ZKConfig, load_config, save_config

__all__ = ['ProtocolConfig', 'SystemConfig', 'ZKConfig', 'load_config', 'save_config']
