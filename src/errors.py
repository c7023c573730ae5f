"""
Error taxonomy shared by the HTTP layer and the pipeline functions.

Each error carries the HTTP status the webhook layer answers with. Inside
pipeline functions they simply propagate to the worker's retry policy.
"""

from typing import Iterable, Optional


class PipelineError(Exception):
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(PipelineError):
    status_code = 401


class ValidationError(PipelineError):
    status_code = 400


class LimitExceededError(PipelineError):
    status_code = 400


class NotFoundError(PipelineError):
    """A record, prompt or keyword is absent in a collaborator."""

    status_code = 400

    def __init__(self, message: str, causes: Optional[Iterable[str]] = None):
        causes = list(causes or [])
        if causes:
            numbered = " ".join(f"{i}) {cause}" for i, cause in enumerate(causes, start=1))
            message = f"{message}. Check: {numbered}"
        super().__init__(message)
        self.causes = causes


class UpstreamError(PipelineError):
    """Airtable, Langfuse, Anthropic or DataForSEO failed in an unclassified way."""

    status_code = 400

    def __init__(self, message: str, service: str = "", upstream_status: Optional[int] = None):
        super().__init__(message)
        self.service = service
        self.upstream_status = upstream_status
