"""
canvassing/errors.py

Domain exceptions for the canvassing workflow.

The workflow core raises these; the HTTP layer maps each one to a JSON error
(see register_error_handlers in canvassing/__init__.py).
"""

from __future__ import annotations


class CanvassError(Exception):
    """Base class for every workflow error."""

    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.__class__.__name__, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class StageIncomplete(CanvassError):
    """advance() called while the current stage's completion predicate is false."""

    status_code = 409


class StageLocked(CanvassError):
    """Operation or navigation targets a stage the session has not reached."""

    status_code = 409


class WorkflowFinished(CanvassError):
    """The abstract of awards is signed; nothing left to advance."""

    status_code = 409


class SignatoryNotFound(CanvassError):
    status_code = 404


class DivisionNotFound(CanvassError):
    status_code = 404


class QuoteNotFound(CanvassError):
    status_code = 404


class SignerMismatch(CanvassError):
    """Acting user is not the named signatory (only when identity enforcement is on)."""

    status_code = 403


class RequestLocked(CanvassError):
    """Purchase request content cannot change once canvassing has started."""

    status_code = 409


class StoreUnavailable(CanvassError):
    """The backing store rejected a read or write."""

    status_code = 503


class RequestNotApproved(CanvassError):
    """Canvassing can only start from an approved purchase request."""

    status_code = 409


class RequestNotFound(CanvassError):
    status_code = 404


class SessionNotStarted(CanvassError):
    """No canvass session exists yet for the purchase request."""

    status_code = 404


class ValidationFailed(CanvassError):
    """Request body is missing required values or is not JSON."""

    status_code = 400
