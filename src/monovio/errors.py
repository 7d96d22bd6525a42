"""Exceptions raised by the tracking front end."""


class FrontendError(RuntimeError):
    """A programming-invariant violation inside the front end.

    Raised when the caller or the front end itself breaks a lifecycle
    contract: a call in the wrong state, a frame that arrives already
    populated at bootstrap, a current frame left alive after processing,
    or inconsistent frame roles. These are never recovered from; the
    pipeline owning the front end is expected to stop.
    """
