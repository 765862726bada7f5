"""Error taxonomy shared by the matching core, collaborators and routes."""

from __future__ import annotations


class PanierError(RuntimeError):
    """Base class for failures surfaced to callers with an HTTP status and code."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class InputValidationError(PanierError):
    """Malformed ingredient, product or request shape rejected before matching."""

    status_code = 422
    code = "invalid_input"


class ExternalCollaboratorError(PanierError):
    """A model-backed collaborator failed or returned output we cannot use."""

    status_code = 502
    code = "collaborator_error"


class CatalogUnavailableError(PanierError):
    """The product catalog could not be loaded."""

    status_code = 503
    code = "catalog_unavailable"


__all__ = [
    "PanierError",
    "InputValidationError",
    "ExternalCollaboratorError",
    "CatalogUnavailableError",
]
