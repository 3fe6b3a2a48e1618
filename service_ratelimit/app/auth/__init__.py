"""
Authentication helpers for the rate limit hook service.
"""

from .hook_auth import AUTH_HEADER, HookAuthenticator, HookServiceConfig, load_hook_config

__all__ = [
    "AUTH_HEADER",
    "HookAuthenticator",
    "HookServiceConfig",
    "load_hook_config",
]
