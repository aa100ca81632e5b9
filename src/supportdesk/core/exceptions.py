"""
Exception hierarchy for the SLA worker.

Domain calculations never raise for unknown priorities or impacts; they fall
back to the default policy. These exceptions mark failures at the edges:
policy loading, the ticket feed and store, and notification delivery.
``details`` carries structured context meant for log ``extra``.
"""

from typing import Any, Dict, Optional


class ApplicationException(Exception):
    """Root of every error raised deliberately by supportdesk."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details) if details else {}


class ConfigurationException(ApplicationException):
    """SLA policy file or escalation ladder that cannot be used."""


class ValidationException(ApplicationException):
    """Ticket data that failed validation on the way in."""


class RepositoryException(ApplicationException):
    """The ticket store could not read or write a ticket."""


class ResourceNotFoundException(ApplicationException):
    """A lookup by id found nothing."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        subject = resource_type if resource_id is None else f"{resource_type} with id '{resource_id}'"
        super().__init__(f"{subject} not found", details)


class ExternalServiceException(ApplicationException):
    """A third-party service call failed; the message is prefixed with its name."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class NotificationException(ExternalServiceException):
    """An escalation or breach alert could not be delivered."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("Notifications", message, details)
