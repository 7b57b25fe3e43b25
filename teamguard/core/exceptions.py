"""
Exception hierarchy for team operations.

Lookup misses are not errors: they come back as None/False from the
service. Only constraint violations and invalid input are raised here;
storage failures propagate as SQLAlchemy exceptions.
"""
from typing import Any


class TeamguardError(Exception):
    """Base exception for the package."""

    code: str = "TEAMGUARD_ERROR"
    message: str = "Team operation failed"

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class ConstraintViolation(TeamguardError):
    """A uniqueness rule inside a team would be broken."""

    code = "CONSTRAINT_VIOLATION"
    message = "Constraint violation"


class DuplicateRoleError(ConstraintViolation):
    code = "DUPLICATE_ROLE"
    message = "Role with this name already exists in the team"


class DuplicateGroupError(ConstraintViolation):
    code = "DUPLICATE_GROUP"
    message = "Group with this code already exists in the team"


class AlreadyMemberError(ConstraintViolation):
    code = "ALREADY_MEMBER"
    message = "User already belongs to the team"


class DuplicateInvitationError(ConstraintViolation):
    code = "DUPLICATE_INVITATION"
    message = "A pending invitation for this email already exists in the team"


class InvalidGrantError(TeamguardError):
    """Ability grant or entity reference is malformed."""

    code = "INVALID_GRANT"
    message = "Invalid ability grant"
