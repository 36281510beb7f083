"""File operations, each with an undoable variant.

The *_undo functions validate their arguments, stage whatever the operation
is about to overwrite or remove, perform it, and return an Undo that puts the
original bytes back. Nothing is touched when validation fails.
"""

import hashlib
import shutil
import tempfile
import uuid
from enum import IntEnum
from pathlib import Path

from rewind import log
from rewind.errors import InvalidArgument, NotFound
from rewind.undo import collect, compensate

DUMMY_CONTENT = "Auto-generated test file"


class Size(IntEnum):
    MB = 1_048_576
    GB = 1_073_741_824


def _path(value, name):
    if value is None or str(value) == "":
        raise InvalidArgument(f"'{name}' must be a non-empty path")
    return Path(value).absolute()


def _existing(value, name, message):
    path = _path(value, name)
    if not path.is_file():
        raise NotFound(message)
    return path


def _file_target(value, name):
    path = _path(value, name)
    if path.is_dir():
        raise InvalidArgument(f"'{name}' must be a file path, but '{path}' is a directory")
    return path


def exists(path):
    """True if path points to an existing file."""
    return bool(path) and Path(path).is_file()


def digest(path):
    """MD5 digest of a file's contents."""
    path = _existing(path, "path", f"Cannot hash '{path}' because it doesn't exist")
    h = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.digest()


def digest_equal(f1, f2):
    """True if both files have the same contents, compared by MD5 digest."""
    _existing(f1, "f1", f"Cannot compare file contents because '{f1}' doesn't exist")
    _existing(f2, "f2", f"Cannot compare file contents because '{f2}' doesn't exist")
    return digest(f1) == digest(f2)


def write_dummy(path):
    """Write a file whose contents don't matter."""
    path = _file_target(path, "path")
    path.write_text(DUMMY_CONTENT)
    return path


def create_sized(value, unit, path):
    """Create a (sparse) file of value * unit bytes, e.g. create_sized(2, Size.MB, "big.bin")."""
    if value < 0:
        raise InvalidArgument("File size value should be zero or greater")
    path = _file_target(path, "path")
    with open(path, "wb") as f:
        f.truncate(value * int(unit))
    log.emit("io", op="create_sized", path=str(path), bytes=value * int(unit))
    return path


def create_sized_temp(value, unit):
    """Like create_sized, in a fresh file under the system temp directory."""
    if value < 0:
        raise InvalidArgument("File size value should be zero or greater")
    return create_sized(value, unit, Path(tempfile.gettempdir()) / uuid.uuid4().hex)


def copy(src, dest):
    """Copy the file src to dest, overwriting dest."""
    dest = _file_target(dest, "dest")
    src = _existing(src, "src", f"Cannot copy file '{src}' to '{dest}' because '{src}' doesn't exist")
    log.emit("io", op="copy", src=str(src), dest=str(dest))
    shutil.copy2(src, dest)


def copy_undo(src, dest, store=None):
    """Copy src to dest; the returned Undo restores (or removes) dest."""
    dest = _file_target(dest, "dest")
    src = _existing(src, "src", f"Cannot copy file '{src}' to '{dest}' because '{src}' doesn't exist")

    def revert(store, staged):
        if staged["dest"] is not None:
            store.restore(staged["dest"])
        else:
            dest.unlink(missing_ok=True)

    return compensate(
        "copy", lambda: copy(src, dest), revert,
        stage={"dest": dest if dest.exists() else None},
        store=store, src=str(src), dest=str(dest),
    )


def move(src, dest):
    """Move the file src to dest, overwriting dest."""
    dest = _file_target(dest, "dest")
    src = _existing(src, "src", f"Cannot move file '{src}' to '{dest}' because '{src}' doesn't exist")
    log.emit("io", op="move", src=str(src), dest=str(dest))
    shutil.copy2(src, dest)
    src.unlink()


def move_undo(src, dest, store=None):
    """Move src to dest; the returned Undo moves it back and restores any overwritten dest."""
    dest = _file_target(dest, "dest")
    src = _existing(src, "src", f"Cannot move file '{src}' to '{dest}' because '{src}' doesn't exist")

    def revert(store, staged):
        if staged["dest"] is not None:
            store.restore(staged["dest"])
        else:
            dest.unlink(missing_ok=True)
        store.restore(staged["src"])

    return compensate(
        "move", lambda: move(src, dest), revert,
        stage={"src": src, "dest": dest if dest.exists() else None},
        store=store, src=str(src), dest=str(dest),
    )


def delete(path):
    """Delete a file. Deleting a file that isn't there is not an error."""
    path = _file_target(path, "path")
    log.emit("io", op="delete", path=str(path))
    path.unlink(missing_ok=True)


def deletes(paths):
    for path in paths:
        delete(path)


def delete_undo(path, store=None):
    """Delete a file; the returned Undo brings it back."""
    path = _existing(path, "path", f"Cannot delete '{path}' because it doesn't exist")

    def revert(store, staged):
        store.restore(staged["path"])

    return compensate(
        "delete", lambda: delete(path), revert,
        stage={"path": path}, store=store, path=str(path),
    )


def deletes_undo(paths, store=None):
    return collect(lambda p: delete_undo(p, store=store), paths)


def _check_replace(dest, src):
    dest = _existing(dest, "dest", f"Cannot replace '{dest}' with '{src}' because '{dest}' doesn't exist")
    src = _existing(src, "src", f"Cannot replace '{dest}' with '{src}' because '{src}' doesn't exist")
    return dest, src


def replace(dest, src):
    """Overwrite the existing file dest with the contents of src."""
    dest, src = _check_replace(dest, src)
    log.emit("io", op="replace", dest=str(dest), src=str(src))
    shutil.copy2(src, dest)


def replace_undo(dest, src, store=None):
    """Replace dest with src; the returned Undo restores the original dest."""
    dest, src = _check_replace(dest, src)

    def revert(store, staged):
        store.restore(staged["dest"])

    return compensate(
        "replace", lambda: replace(dest, src), revert,
        stage={"dest": dest}, store=store, dest=str(dest), src=str(src),
    )
