from __future__ import annotations


class DerjaError(Exception):
    pass


class GenerationError(DerjaError):
    """The generation service could not be reached or answered non-2xx."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class InvalidRequest(DerjaError):
    pass
