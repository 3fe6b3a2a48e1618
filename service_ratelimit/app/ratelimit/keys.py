"""
Rate limit key derivation.
"""

from typing import Mapping

from shared.logging import get_logger

from .policy import Policy

logger = get_logger("ratelimit.key")

KEY_DELIMITER = ":"


def build_key(policy: Policy, request, headers: Mapping[str, str]) -> str:
    """Build the rate limit key for a request.

    Each configured header, then each configured session variable, contributes
    ``"<name>:<value>"`` in configured order; a missing value contributes an
    empty string. With no configured fields every request maps to the same
    (empty) key and shares one global quota.

    ``headers`` may be any mapping. Pass Starlette ``Headers`` for
    case-insensitive header matching.
    """
    parts = []

    for header in policy.key_fields.header_names:
        value = headers.get(header) or ""
        parts.append(f"{header}{KEY_DELIMITER}{value}")

    session_variables = request.session_variables
    for variable in policy.key_fields.session_variable_names:
        value = session_variables.get(variable) or ""
        parts.append(f"{variable}{KEY_DELIMITER}{value}")

    key = KEY_DELIMITER.join(parts)
    logger.debug("Generated rate limit key", key=key)
    return key
