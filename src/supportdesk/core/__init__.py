"""Exception hierarchy shared by every layer of supportdesk."""

from supportdesk.core.exceptions import (
    ApplicationException,
    ConfigurationException,
    ValidationException,
    RepositoryException,
    ResourceNotFoundException,
    ExternalServiceException,
    NotificationException,
)

__all__ = [
    "ApplicationException",
    "ConfigurationException",
    "ValidationException",
    "RepositoryException",
    "ResourceNotFoundException",
    "ExternalServiceException",
    "NotificationException",
]
