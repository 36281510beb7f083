class RewindError(Exception):
    """Base class for errors raised by rewind."""


class InvalidArgument(RewindError, ValueError):
    """A precondition on an argument failed. Raised before any state is touched."""


class NotFound(RewindError, FileNotFoundError):
    """A referenced file or directory does not exist."""


class PollTimeout(RewindError, TimeoutError):
    """Polling ran out of time before the predicate accepted a result.

    str(error) is the message configured on the poll, verbatim.
    """

    def __init__(self, message, attempts=0, elapsed=0.0):
        super().__init__(message)
        self.message = message
        self.attempts = attempts
        self.elapsed = elapsed


class UndoError(RewindError):
    """One or more undo actions of a composite release failed.

    Every failure is kept in `errors`, in release order.
    """

    def __init__(self, errors):
        self.errors = list(errors)
        lines = [f"{len(self.errors)} undo action(s) failed:"]
        lines += [f"  {type(e).__name__}: {e}" for e in self.errors]
        super().__init__("\n".join(lines))
