"""Exceptions raised across the songwriting session layer."""

from __future__ import annotations


class SongsmithError(Exception):
    """Base class for all songsmith errors."""


class CollaboratorError(SongsmithError):
    """An external collaborator (LLM or music API) did not deliver usable output."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class ProviderError(CollaboratorError):
    """Network or provider-side failure. Transient; the operation may be retried."""


class MalformedResponseError(CollaboratorError):
    """The collaborator answered, but the content could not be parsed into the expected shape."""


class CreationFailure(SongsmithError):
    """Song generation failed and nothing was added to history."""


class SubmissionInProgressError(SongsmithError):
    """A submission is already pending; only one may be in flight at a time."""


class AnalysisRequiredError(SongsmithError):
    """A rewrite was requested for a song that has no analysis to apply."""
