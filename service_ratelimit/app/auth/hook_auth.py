"""
Shared-secret authentication for hook callers.

The engine calling the hook sends a static token in the ``hasura-m-auth``
header; it must match ``headers.hasura-m-auth`` in ``configuration.json``.
"""

import hmac
import json
from pathlib import Path
from typing import Dict, Mapping, Union

from pydantic import BaseModel, Field, ValidationError

from shared.errors import AuthenticationError, ConfigurationError
from shared.logging import get_logger

AUTH_HEADER = "hasura-m-auth"
SERVICE_CONFIG_FILE_NAME = "configuration.json"


class _HookHeaders(BaseModel):
    auth_token: str = Field(alias=AUTH_HEADER)


class HookServiceConfig(BaseModel):
    """Contents of ``configuration.json``."""

    headers: _HookHeaders


def load_hook_config(config_dir: Union[str, Path]) -> HookServiceConfig:
    path = Path(config_dir) / SERVICE_CONFIG_FILE_NAME
    try:
        return HookServiceConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except FileNotFoundError as e:
        raise ConfigurationError("Hook configuration file not found", details={"path": str(path)}) from e
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigurationError(
            "Invalid hook configuration", details={"path": str(path), "error": str(e)}
        ) from e


class HookAuthenticator:
    """Checks the shared secret on inbound hook calls."""

    def __init__(self, auth_token: str):
        self._expected = auth_token.encode("utf-8")
        self.logger = get_logger("ratelimit.auth")

    @classmethod
    def from_config(cls, config: HookServiceConfig) -> "HookAuthenticator":
        return cls(config.headers.auth_token)

    def verify(self, headers: Mapping[str, str]) -> None:
        """Raise ``AuthenticationError`` unless the auth header matches."""
        presented = headers.get(AUTH_HEADER)
        if presented is None or not hmac.compare_digest(presented.encode("utf-8"), self._expected):
            self.logger.warning("Invalid authentication token", header_present=presented is not None)
            raise AuthenticationError()

    def unauthorized_body(self) -> Dict[str, str]:
        return {"error": "Unauthorized request"}
