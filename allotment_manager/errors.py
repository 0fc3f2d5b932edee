from __future__ import annotations

from enum import Enum


class AllotmentManagerError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RecordNotFound(AllotmentManagerError):
    status_code = 404


class ValidationFailed(AllotmentManagerError):
    status_code = 400


class EligibilityFailure(str, Enum):
    ROLE_NOT_PERMITTED = "role_not_permitted"
    INDIVIDUALLY_RESTRICTED = "individually_restricted"
    SLOT_ALREADY_TAKEN = "slot_already_taken"


class EligibilityError(ValidationFailed):
    """Raised when a doctor cannot take a proposed allotment."""

    def __init__(self, kind: EligibilityFailure, message: str) -> None:
        self.kind = kind
        super().__init__(message)
