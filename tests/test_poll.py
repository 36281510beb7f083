"""Tests for polling, timeouts and racing operations."""

import http.server
import itertools
import threading
import time
from datetime import timedelta

import pytest

from rewind import poll
from rewind.errors import InvalidArgument, PollTimeout


def counter(values):
    """An operation returning the given values in turn, then the last one forever."""
    it = itertools.chain(values, itertools.repeat(values[-1]))
    return lambda: next(it)


def test_defaults():
    p = poll.target(lambda: 1)
    assert p.interval == 5.0
    assert p.timeout == 30.0
    assert p.predicate(object())
    assert p.message == poll.DEFAULT_MESSAGE


def test_configuration_is_immutable():
    base = poll.target(lambda: 1)
    configured = base.until(lambda x: x > 0).every(0.1).within(timedelta(seconds=2)).error("nope")

    assert base.interval == 5.0 and base.timeout == 30.0
    assert configured.interval == 0.1
    assert configured.timeout == 2.0
    assert configured.message == "nope"


def test_nothing_runs_before_run():
    calls = []
    poll.target(lambda: calls.append(1)).every(0.01).within(1)
    assert calls == []


def test_negative_durations_are_invalid():
    with pytest.raises(InvalidArgument):
        poll.target(lambda: 1).every(-1)


def test_fast_success_returns_before_one_interval():
    started = time.monotonic()
    value = poll.target(lambda: 42).until(lambda x: x == 42).every(2).within(10).run()

    assert value == 42
    assert time.monotonic() - started < 2


def test_retries_until_predicate_accepts():
    outcome = poll.target(counter([1, 2, 3])).until(lambda x: x == 3).every(0.01).within(5).capture()

    assert outcome.succeeded
    assert outcome.value == 3
    assert outcome.attempts == 3


def test_timeout_carries_message_verbatim():
    p = poll.target(lambda: 0).until(lambda x: x == 1).every(0.05).within(0.3).error("queue never drained")

    started = time.monotonic()
    with pytest.raises(PollTimeout) as excinfo:
        p.run()
    elapsed = time.monotonic() - started

    assert str(excinfo.value) == "queue never drained"
    assert 0.3 <= elapsed < 0.3 + 0.05 + 0.2
    assert excinfo.value.attempts >= 2


def test_timeout_preempts_hanging_attempt():
    release = threading.Event()

    def hang():
        release.wait(5)
        return 1

    started = time.monotonic()
    outcome = poll.target(hang).every(0.01).within(0.2).capture()
    release.set()

    assert outcome.status == poll.TIMED_OUT
    assert time.monotonic() - started < 1


def test_late_success_is_discarded():
    def slow():
        time.sleep(0.4)
        return "too late"

    outcome = poll.target(slow).within(0.1).capture()

    assert outcome.status == poll.TIMED_OUT
    assert outcome.value is None


def test_failing_attempt_is_not_retried():
    calls = []

    def boom():
        calls.append(1)
        raise ConnectionResetError("peer gone")

    with pytest.raises(ConnectionResetError, match="peer gone"):
        poll.target(boom).every(0.01).within(2).run()

    assert calls == [1]


def test_failing_predicate_fails_the_poll():
    outcome = poll.target(lambda: 1).until(lambda x: 1 / 0).within(1).capture()
    assert outcome.status == poll.FAILED
    assert isinstance(outcome.error, ZeroDivisionError)


def test_race_adopts_first_defined_result():
    never = lambda: None  # noqa: E731
    second_time = counter([None, "ready"])

    started = time.monotonic()
    value = poll.targets(never, second_time).every(0.05).within(5).run()

    assert value == "ready"
    assert time.monotonic() - started < 1


def test_race_does_not_wait_for_slow_operations():
    def slow():
        time.sleep(2)
        return "slow"

    started = time.monotonic()
    value = poll.target2(slow, lambda: "fast").within(5).run()

    assert value == "fast"
    assert time.monotonic() - started < 1


def test_race_with_no_result_times_out():
    with pytest.raises(PollTimeout):
        poll.target3(lambda: None, lambda: None, lambda: None).every(0.02).within(0.1).run()


def test_race_applies_predicate_to_adopted_value():
    value = poll.targets([counter([1, 2, 5])]).until(lambda x: x > 3).every(0.01).within(2).run()
    assert value == 5


def test_race_propagates_errors():
    def boom():
        raise KeyError("missing")

    with pytest.raises(KeyError):
        poll.targets(boom, lambda: None).within(1).run()


def test_targets_requires_operations():
    with pytest.raises(InvalidArgument):
        poll.targets()


def test_until_custom():
    assert poll.until_custom(counter([0, 7]), lambda x: x == 7, 0.01, 2, "never seven") == 7


def test_until_file_exists(tmp_path):
    path = tmp_path / "ready.flag"
    threading.Timer(0.1, path.write_text, args=("done",)).start()

    assert poll.until_file_exists(path, 0.02, 5) == path


def test_until_file_exists_message(tmp_path):
    path = tmp_path / "never"
    with pytest.raises(PollTimeout, match="is not present after polling"):
        poll.until_file_exists(path, 0.02, 0.1)


def test_until_file_with_predicate(tmp_path):
    path = tmp_path / "out.txt"
    path.write_text("")
    threading.Timer(0.1, path.write_text, args=("complete",)).start()

    found = poll.until_file(path, lambda p: p.read_text() == "complete", 0.02, 5, "never complete")

    assert found == path


def test_until_files(tmp_path):
    out = tmp_path / "out"

    def produce():
        out.mkdir()
        (out / "1.csv").write_text("a")
        (out / "2.csv").write_text("b")

    threading.Timer(0.1, produce).start()
    found = poll.until_files(out, lambda fs: len(fs) == 2, 0.02, 5, "expected two files")

    assert [f.name for f in found] == ["1.csv", "2.csv"]


class _Handler(http.server.BaseHTTPRequestHandler):
    def log_message(self, *a):
        pass

    def do_GET(self):
        self.send_response(200 if self.path == "/health" else 503)
        self.end_headers()


@pytest.fixture
def server():
    srv = http.server.HTTPServer(("127.0.0.1", 0), _Handler)
    t = threading.Thread(target=srv.serve_forever, daemon=True)
    t.start()
    yield f"http://127.0.0.1:{srv.server_address[1]}"
    srv.shutdown()
    srv.server_close()


def test_until_http_ok(server):
    poll.until_http_ok(f"{server}/health", 0.05, 5)


def test_until_http_ok_times_out_on_unhealthy(server):
    with pytest.raises(PollTimeout, match="didn't return HTTP OK"):
        poll.until_http_ok(f"{server}/broken", 0.05, 0.3)


def test_poll_outcome_is_logged(tmp_path):
    from rewind import log

    events = []
    log.add_sink(events.append)
    try:
        poll.target(lambda: 1).run()
    finally:
        log.remove_sink(events.append)

    assert [e["status"] for e in events if e["event"] == "poll"] == ["succeeded"]
