"""
Exceptions raised by the integration core
"""

from typing import Any, Optional


class CloudIntegrationError(Exception):
    """Base exception for cloud integration errors."""
    pass


class RemoteServiceError(CloudIntegrationError):
    """Raised when a provider request fails in transport or authorization."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ConfigurationNotFoundError(CloudIntegrationError):
    """Raised when a configuration lookup finds nothing."""

    def __init__(self, kind: str, key: Any):
        super().__init__(f"{kind} configuration {key} not found")
        self.kind = kind
        self.key = key


class UnknownProviderError(CloudIntegrationError):
    """Raised when no provider is registered for an identifier."""

    def __init__(self, provider_id: str):
        super().__init__(f"No cloud integration provider registered for '{provider_id}'")
        self.provider_id = provider_id


class InvalidQueryError(CloudIntegrationError):
    """Raised when a datum query cannot be executed as given."""
    pass
