"""Reversible handles.

An Undo owns a compensating action: releasing it puts the environment back
the way it was before the mutation that produced it. Release is explicit and
happens at most once; use the handle as a context manager to release it on
every exit path:

    with item.replace_undo("app.json", "fixtures/app.json"):
        run_scenario()
    # app.json is back to its original bytes here, even if the scenario raised

Several handles can be released as one with combine(), or collected during a
test with an UndoStack and released in reverse order at teardown.
"""

from rewind import log, staging
from rewind.errors import UndoError


class Undo:
    """Single-owner, single-release handle around an undo callable."""

    def __init__(self, action=None, description=""):
        self._action = action
        self.description = description
        self._released = False

    @property
    def released(self):
        return self._released

    def release(self):
        """Run the undo action. No-op when already released.

        The handle counts as released even when the action raises; a failed
        undo is reported to the caller and never retried.
        """
        if self._released:
            return
        self._released = True
        if self._action is not None:
            self._action()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()

    def __repr__(self):
        state = "released" if self._released else "pending"
        return f"<{type(self).__name__} {self.description!r} {state}>"


class CompositeUndo(Undo):
    """Releases every member in the given order, collecting failures.

    A failing member does not stop the ones after it; once all members ran,
    the failures are raised together as UndoError.
    """

    def __init__(self, undos, description="composite"):
        self.undos = list(undos)
        super().__init__(self._release_all, description)

    def _release_all(self):
        errors = []
        for undo in self.undos:
            try:
                undo.release()
            except Exception as e:
                errors.append(e)
        if errors:
            log.emit("undo", action="composite", members=len(self.undos), failures=len(errors))
            raise UndoError(errors)


def create(action, description=""):
    """Wrap a no-argument callable as an Undo."""
    return Undo(action, description)


def empty():
    """An Undo with nothing to undo."""
    return Undo(description="empty")


def combine(undos):
    """Combine handles into one, released in the supplied order."""
    return CompositeUndo(undos)


class UndoStack:
    """Collects handles during a test and releases them last-in, first-out.

        stack = UndoStack()
        stack.push(directory.ensure_undo(out_dir))
        stack.push(item.copy_undo(fixture, out_dir / "in.csv"))
        ...
        stack.release()   # copy undone first, then the directory
    """

    def __init__(self):
        self._undos = []

    def push(self, undo):
        self._undos.append(undo)
        return undo

    def release(self):
        undos, self._undos = self._undos, []
        combine(reversed(undos)).release()

    def __len__(self):
        return len(self._undos)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()


def compensate(name, mutate, revert, stage=None, store=None, **fields):
    """Run mutate() as a reversible unit.

    stage maps a label to a path to copy into the staging store before the
    mutation (None: nothing to stage under that label). The returned Undo
    calls revert(store, staged) with the same labels mapped to their
    snapshots, then discards the staged copies.

    If the mutation itself fails, the staged copies are discarded and the
    error propagates; no handle is returned. If revert() fails, the staged
    copies stay in the store so they can still be recovered by hand.
    """
    if store is None:
        store = staging.default_store()

    staged = {}
    try:
        for label, path in (stage or {}).items():
            staged[label] = store.stage(path) if path is not None else None
        mutate()
    except Exception:
        for snapshot in staged.values():
            if snapshot is not None:
                store.discard(snapshot)
        raise

    def action():
        log.emit("undo", op=name, **fields)
        revert(store, staged)
        for snapshot in staged.values():
            if snapshot is not None:
                store.discard(snapshot)

    details = " ".join(f"{k}={v}" for k, v in fields.items())
    return Undo(action, f"{name} {details}".strip())


def collect(make_undo, items):
    """Apply make_undo to every item and combine the handles.

    When one item fails, the handles already produced are released (most
    recent first) before the error propagates, so nothing is left half done.
    """
    undos = []
    try:
        for item in items:
            undos.append(make_undo(item))
    except Exception:
        combine(reversed(undos)).release()
        raise
    return combine(undos)
