"""The process working directory as explicit, guarded state.

The working directory is process-wide, so changes to it go through this
module only. Each change() captures the directory it replaces and returns an
Undo that goes back to it. Changes nest; releasing an outer change also ends
every change made inside it, so out-of-order releases still land on the
directory that was current before the outer change.
"""

import os
import threading
from pathlib import Path

from rewind import log
from rewind.undo import Undo

_lock = threading.Lock()
_active = []  # [original, target] per change still in effect, innermost last


def current():
    return Path.cwd()


def depth():
    """Number of changes still in effect."""
    with _lock:
        return len(_active)


def change(path):
    """Make path the working directory. Returns an Undo restoring the previous one."""
    target = Path(path).absolute()
    with _lock:
        original = Path.cwd()
        os.chdir(target)
        entry = [original, target]
        _active.append(entry)
    log.emit("io", op="chdir", src=str(original), dest=str(target))

    def restore():
        with _lock:
            index = next((i for i, e in enumerate(_active) if e is entry), None)
            if index is None:
                return  # already ended by an outer change
            del _active[index:]
            os.chdir(original)
        log.emit("undo", op="chdir", src=str(target), dest=str(original))

    return Undo(restore, f"chdir {target}")
