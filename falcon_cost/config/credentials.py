"""
API credential providers.

Credentials are passed explicitly to the clients that need them instead
of living in module state.
"""

import os
from abc import ABC, abstractmethod
from typing import Optional

from .loader import FalconConfig

FAL_KEY_ENV = "FAL_KEY"


class MissingCredentialError(RuntimeError):
    """Raised when no API key can be resolved."""


class CredentialProvider(ABC):
    """Resolves the fal API key on demand."""

    @abstractmethod
    def get_api_key(self) -> str:
        """Return the API key or raise MissingCredentialError."""


class StaticCredentialProvider(CredentialProvider):
    """Provider holding a fixed key."""

    def __init__(self, api_key: str):
        if not api_key:
            raise ValueError("api_key cannot be empty")
        self._api_key = api_key

    def get_api_key(self) -> str:
        return self._api_key


class EnvCredentialProvider(CredentialProvider):
    """``FAL_KEY`` from the environment, then the config file's ``api_key``.

    Resolution happens on every call so a key exported after startup is
    still picked up.
    """

    def __init__(self, config: Optional[FalconConfig] = None):
        self.config = config

    def get_api_key(self) -> str:
        env_key = os.environ.get(FAL_KEY_ENV)
        if env_key:
            return env_key
        if self.config is not None and self.config.api_key:
            return self.config.api_key
        raise MissingCredentialError(
            f"{FAL_KEY_ENV} not found. Set the {FAL_KEY_ENV} environment variable "
            "or add api_key to the falcon config file"
        )
