from __future__ import annotations

from typing import Optional


class StitchError(Exception):
    """Base for every failure the stitch pipeline reports back to the caller.

    `retryable` tells the delivery layer whether redelivering the same
    request can succeed. `stage` is filled in by the orchestrator.
    """

    retryable = True

    def __init__(self, message: str, *, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    @property
    def reason(self) -> str:
        return type(self).__name__

    def describe(self) -> str:
        msg = str(self)
        if self.stage:
            return f"{self.stage}: {msg}"
        return msg


class MalformedRequest(StitchError):
    retryable = False


class AssetUnavailable(StitchError):
    pass


class TransformFailed(StitchError):
    def __init__(
        self,
        message: str,
        *,
        returncode: Optional[int] = None,
        diagnostics: str = "",
        stage: Optional[str] = None,
    ):
        super().__init__(message, stage=stage)
        self.returncode = returncode
        self.diagnostics = diagnostics


class PublishFailed(StitchError):
    pass
