"""Bounded polling for eventually consistent state.

A Poll describes what to call, which result is good enough, how often to
try and for how long. Nothing runs until run() (or capture()):

    poll.target(lambda: queue.depth()).until(lambda n: n == 0).every(0.5).within(10).run()

Every attempt runs on a worker thread, so a hanging attempt cannot hold the
caller past the timeout. Rules:

    - an attempt that raises ends polling at once; the error propagates
    - a result the predicate rejects is retried after `interval`, forever
    - once `timeout` has elapsed, polling ends with PollTimeout(message),
      even if an attempt still in flight would have succeeded

Presets (until_every_1s_for_5s, until_file_exists_every_5s_for_30s, ...)
are the same machinery with a fixed interval and timeout.
"""

import queue
import threading
import time
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path

from rewind import http, log
from rewind.errors import InvalidArgument, PollTimeout

DEFAULT_INTERVAL = 5.0
DEFAULT_TIMEOUT = 30.0
DEFAULT_MESSAGE = "Polling doesn't result in any values"

SUCCEEDED = "succeeded"
TIMED_OUT = "timed_out"
FAILED = "failed"


class _NoResult:
    def __repr__(self):
        return "NO_RESULT"


# Returned by an attempt that produced nothing; never accepted by any predicate.
NO_RESULT = _NoResult()


def seconds(value):
    """Normalize a duration given as seconds or timedelta."""
    if isinstance(value, timedelta):
        value = value.total_seconds()
    if value is None or value < 0:
        raise InvalidArgument(f"Duration must be zero or positive, got {value!r}")
    return float(value)


def _always(_):
    return True


@dataclass(frozen=True)
class Poll:
    """Immutable description of a bounded retry-until-predicate operation."""

    operation: object
    predicate: object = _always
    interval: float = DEFAULT_INTERVAL
    timeout: float = DEFAULT_TIMEOUT
    message: str = DEFAULT_MESSAGE

    def __post_init__(self):
        if not callable(self.operation):
            raise InvalidArgument("Poll operation must be callable")
        if not callable(self.predicate):
            raise InvalidArgument("Poll predicate must be callable")
        object.__setattr__(self, "interval", seconds(self.interval))
        object.__setattr__(self, "timeout", seconds(self.timeout))

    def until(self, predicate):
        """Only accept results for which predicate returns True."""
        return replace(self, predicate=predicate)

    def every(self, interval):
        """Wait this long between attempts."""
        return replace(self, interval=interval)

    def within(self, timeout):
        """Give up after this long in total."""
        return replace(self, timeout=timeout)

    def error(self, message):
        """Message of the PollTimeout raised when time runs out."""
        return replace(self, message=message)

    def capture(self):
        return capture(self)

    def run(self):
        return execute(self)


@dataclass(frozen=True)
class Outcome:
    """Terminal result of a poll: succeeded, timed_out or failed."""

    status: str
    value: object = None
    error: BaseException = None
    message: str = ""
    attempts: int = 0
    elapsed: float = 0.0

    @property
    def succeeded(self):
        return self.status == SUCCEEDED

    def unwrap(self):
        """Return the value, or raise PollTimeout / the attempt's own error."""
        if self.status == SUCCEEDED:
            return self.value
        if self.status == TIMED_OUT:
            raise PollTimeout(self.message, self.attempts, self.elapsed)
        raise self.error


class _Attempt:
    """One call of an operation on a daemon thread.

    Daemon, because an attempt that never returns must not keep the process
    alive after the poll timed out.
    """

    def __init__(self, operation):
        self._operation = operation
        self._done = threading.Event()
        self.value = None
        self.error = None
        threading.Thread(target=self._run, daemon=True, name="rewind-poll").start()

    def _run(self):
        try:
            self.value = self._operation()
        except BaseException as e:
            self.error = e
        finally:
            self._done.set()

    def wait(self, timeout):
        return self._done.wait(timeout)


def capture(poll):
    """Run a poll to its terminal state and return the Outcome. Never raises for timeouts."""
    started = time.monotonic()
    deadline = started + poll.timeout
    attempts = 0

    def finish(status, value=None, error=None):
        elapsed = time.monotonic() - started
        log.emit(
            "poll", status=status, attempts=attempts,
            elapsed_ms=round(elapsed * 1000), message=poll.message,
            error=repr(error) if error is not None else None,
        )
        return Outcome(status, value, error, poll.message, attempts, elapsed)

    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return finish(TIMED_OUT)

        attempts += 1
        attempt = _Attempt(poll.operation)
        if not attempt.wait(remaining) or time.monotonic() > deadline:
            return finish(TIMED_OUT)
        if attempt.error is not None:
            return finish(FAILED, error=attempt.error)

        if attempt.value is not NO_RESULT:
            try:
                accepted = poll.predicate(attempt.value)
            except Exception as e:
                return finish(FAILED, error=e)
            if accepted:
                return finish(SUCCEEDED, value=attempt.value)

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return finish(TIMED_OUT)
        time.sleep(min(poll.interval, remaining))


def execute(poll):
    """Run a poll and return the accepted value; raises PollTimeout when time runs out."""
    return capture(poll).unwrap()


def target(operation):
    """Start describing a poll on operation, with the default interval, timeout and message."""
    return Poll(operation)


def _race_one(operation, results):
    try:
        results.put((operation(), None))
    except BaseException as e:
        results.put((None, e))


def _race(operations):
    def attempt():
        results = queue.Queue()
        for operation in operations:
            threading.Thread(
                target=_race_one, args=(operation, results), daemon=True, name="rewind-race"
            ).start()
        for _ in operations:
            value, error = results.get()
            if error is not None:
                raise error
            if value is not None:
                return value
        return NO_RESULT

    return attempt


def targets(*operations):
    """Poll several operations at once; each attempt adopts the first non-None result.

    The operations of one attempt run concurrently. When none of them returns
    something other than None, the attempt counts as no result and is retried.
    Accepts the operations as arguments or as one iterable.
    """
    if len(operations) == 1 and not callable(operations[0]):
        operations = tuple(operations[0])
    if not operations:
        raise InvalidArgument("targets() needs at least one operation")
    for operation in operations:
        if not callable(operation):
            raise InvalidArgument(f"Poll operation must be callable, got {operation!r}")
    return Poll(_race(operations))


def target2(f1, f2):
    return targets(f1, f2)


def target3(f1, f2, f3):
    return targets(f1, f2, f3)


def _fmt(value):
    value = seconds(value)
    return f"{value:g}s"


# ---------------------------------------------------------------------------
# Custom operations
# ---------------------------------------------------------------------------

def until_custom(operation, predicate, interval, timeout, message):
    """Poll operation every interval until predicate accepts its result, for at most timeout."""
    return execute(Poll(operation, predicate, interval, timeout, message))


def until_every_1s_for_5s(operation, predicate, message):
    return until_custom(operation, predicate, 1, 5, message)


def until_every_1s_for_10s(operation, predicate, message):
    return until_custom(operation, predicate, 1, 10, message)


def until_every_5s_for_30s(operation, predicate, message):
    return until_custom(operation, predicate, 5, 30, message)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def until_file(path, predicate, interval, timeout, message):
    """Poll until path is an existing file that predicate accepts. Returns the Path."""
    path = Path(path)
    return until_custom(
        lambda: path, lambda p: p.is_file() and predicate(p), interval, timeout, message
    )


def until_file_exists(path, interval, timeout):
    return until_custom(
        lambda: Path(path),
        lambda p: p.is_file(),
        interval,
        timeout,
        f"File '{path}' is not present after polling (every {_fmt(interval)}, timeout {_fmt(timeout)})",
    )


def until_file_exists_every_1s_for_5s(path):
    return until_file_exists(path, 1, 5)


def until_file_exists_every_1s_for_10s(path):
    return until_file_exists(path, 1, 10)


def until_file_exists_every_5s_for_30s(path):
    return until_file_exists(path, 5, 30)


def _list_files(path):
    path = Path(path)
    if not path.is_dir():
        return []
    return sorted(f for f in path.iterdir() if f.is_file())


def until_files(path, predicate, interval, timeout, message):
    """Poll the files directly inside path until predicate accepts the list. Returns the list.

    A directory that doesn't exist (yet) reads as an empty list and is polled
    again, so waiting for output that creates its own directory works. It is
    not reported as a failure.
    """
    return until_custom(lambda: _list_files(path), predicate, interval, timeout, message)


def until_files_every_1s_for_5s(path, predicate, message):
    return until_files(path, predicate, 1, 5, message)


def until_files_every_1s_for_10s(path, predicate, message):
    return until_files(path, predicate, 1, 10, message)


def until_files_every_5s_for_30s(path, predicate, message):
    return until_files(path, predicate, 5, 30, message)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

def until_http_ok(url, interval, timeout):
    """Send GET requests to url every interval until it answers 200 OK."""
    until_custom(
        lambda: http.status(url, timeout=seconds(timeout) or None),
        lambda code: code == http.OK,
        interval,
        timeout,
        f"Target '{url}' didn't return HTTP OK after polling (every {_fmt(interval)}, timeout {_fmt(timeout)})",
    )


def until_http_ok_every_1s_for_5s(url):
    until_http_ok(url, 1, 5)


def until_http_ok_every_1s_for_10s(url):
    until_http_ok(url, 1, 10)


def until_http_ok_every_5s_for_30s(url):
    until_http_ok(url, 5, 30)
