"""Server-side API key lookup, restricted to an allow-list of names."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping

from agentchat.errors import ConfigurationError

logger = logging.getLogger(__name__)


class SecretStore:
    """Resolve named secrets from the environment.

    Only names in ``allowed_keys`` can be resolved; asking for anything else
    fails the same way a missing key does, so callers cannot probe the
    environment.
    """

    def __init__(
        self, allowed_keys: Iterable[str], environ: Mapping[str, str] | None = None
    ) -> None:
        self._allowed = frozenset(allowed_keys)
        self._environ = environ

    def get_api_key(self, key_name: str) -> str:
        environ = self._environ if self._environ is not None else os.environ
        value = environ.get(key_name, "") if key_name in self._allowed else ""
        if not value:
            logger.error("API key %r is not available", key_name)
            raise ConfigurationError(f'API key "{key_name}" not found')
        return value
