"""Domain errors raised by the participation and rewards services.

Every error carries a stable ``kind`` so callers can render a specific
message, and a ``category`` the API layer maps onto an HTTP status.
"""
from __future__ import annotations

PRECONDITION = "precondition"
CONFLICT = "conflict"
NOT_FOUND = "not_found"


class LedgerError(Exception):
    kind: str = "ledger_error"
    category: str = PRECONDITION

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# ---------- precondition violations ----------

class TenantMismatch(LedgerError):
    kind = "tenant_mismatch"
    category = PRECONDITION


class NotCircleMember(LedgerError):
    kind = "not_circle_member"
    category = PRECONDITION


class NotParticipant(LedgerError):
    kind = "not_participant"
    category = PRECONDITION


# ---------- conflict violations ----------

class AlreadyMember(LedgerError):
    kind = "already_member"
    category = CONFLICT


class AlreadyJoined(LedgerError):
    kind = "already_joined"
    category = CONFLICT


class AlreadyReviewed(LedgerError):
    kind = "already_reviewed"
    category = CONFLICT


class ReviewInProgress(LedgerError):
    kind = "review_in_progress"
    category = CONFLICT


# ---------- not found ----------

class NotFound(LedgerError):
    kind = "not_found"
    category = NOT_FOUND

    def __init__(self, entity: str, identifier):
        super().__init__(f"{entity} '{identifier}' not found")
        self.entity = entity
        self.identifier = identifier
