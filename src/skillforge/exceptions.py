"""Domain exceptions raised by services and mapped to HTTP responses by the error handler."""

from __future__ import annotations


class SkillForgeError(Exception):
    """Base class for expected, user-facing failures."""

    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationFailedError(SkillForgeError):
    """Input is well-formed but violates a domain rule."""

    status_code = 400


class PermissionDeniedError(SkillForgeError):
    status_code = 403


class NotFoundError(SkillForgeError):
    status_code = 404


class ConflictError(SkillForgeError):
    """The resource already exists or is in the wrong state."""

    status_code = 409
