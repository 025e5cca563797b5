"""
wecomly Configuration

Pydantic configuration models and validation.
"""

from .schemas import AppSettings, ChannelMode, DmPolicy, WeComConfig, validate_config

__all__ = [
    "AppSettings",
    "ChannelMode",
    "DmPolicy",
    "WeComConfig",
    "validate_config",
]
