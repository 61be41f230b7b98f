"""Core module - Shared configuration."""

from opasync.core.config import ResourceType, ServerConfig

__all__ = [
    "ResourceType",
    "ServerConfig",
]
