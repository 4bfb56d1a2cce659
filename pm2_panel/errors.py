from __future__ import annotations


class PanelError(Exception):
    """Base class for every error raised by the panel itself."""


class DecodeError(PanelError):
    """An inbound identifier could not be turned into an ActionToken."""

    def __init__(self, raw: object, reason: str) -> None:
        super().__init__(f"{reason}: {raw!r}")
        self.raw = raw
        self.reason = reason


class MalformedToken(DecodeError):
    pass


class UnknownKind(DecodeError):
    pass


class SupervisorError(PanelError):
    """A supervisor call (connect/list/start/stop/restart) failed.

    ``detail`` is the human-readable reason shown to the user.
    """

    def __init__(self, detail: str, *, operation: str = "", process_id: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.operation = operation
        self.process_id = process_id


class RefreshCycleError(PanelError):
    """One refresh cycle failed; carries the phase it failed in."""

    def __init__(self, phase: str, cause: BaseException) -> None:
        super().__init__(f"refresh failed while {phase}: {cause}")
        self.phase = phase
        self.cause = cause
