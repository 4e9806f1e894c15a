from __future__ import annotations

from typing import Optional


class NegotiationError(Exception):
    """
    Base for every recoverable error raised by the rider negotiation core.
    The API layer maps status_code onto an HTTPException; nothing here should
    ever crash the process.
    """

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(NegotiationError):
    status_code = 422


class IncompleteAcknowledgmentError(ValidationError):
    pass


class MissingNotesError(ValidationError):
    pass


class NotFoundError(NegotiationError):
    status_code = 404


class ConcurrentModificationError(NegotiationError):
    status_code = 409

    def __init__(self, acknowledgment_id: str, attempts: int):
        super().__init__(
            f"Acknowledgment {acknowledgment_id} changed concurrently; "
            f"gave up after {attempts} attempts. Refresh and retry."
        )
        self.acknowledgment_id = acknowledgment_id
        self.attempts = attempts


class IllegalTransitionError(NegotiationError):
    status_code = 409

    def __init__(self, action: str, status: str, message: Optional[str] = None):
        super().__init__(message or f"Action '{action}' is not allowed while status is '{status}'.")
        self.action = action
        self.status = status


class InvalidActorError(IllegalTransitionError):
    """Wrong role for the action, or a party responding to its own proposal."""

    status_code = 403


class NegotiationInvariantError(AssertionError):
    """
    Status/ledger combination outside the transition table.
    A programming bug, never translated into a user-facing response.
    """
