"""Directory operations, each with an undoable variant.

Directory snapshots copy the whole tree, empty subdirectories included, so
releasing an Undo from this module leaves exactly the tree that was there
before: same files, same bytes, nothing extra.
"""

import shutil
from pathlib import Path

from rewind import cwd, log
from rewind.errors import InvalidArgument, NotFound
from rewind.staging.local import clear_contents
from rewind.undo import Undo, collect, compensate


def _path(value, name):
    if value is None or str(value) == "":
        raise InvalidArgument(f"'{name}' must be a non-empty path")
    return Path(value).absolute()


def _existing(value, name, action):
    path = _path(value, name)
    if not path.is_dir():
        raise NotFound(
            f"Directory '{path}' cannot be {action} because it does not exist, please make sure "
            "you reference an existing directory by first calling 'directory.ensure' for example"
        )
    return path


def _dir_target(value, name):
    path = _path(value, name)
    if path.exists() and not path.is_dir():
        raise InvalidArgument(f"'{name}' must be a directory path, but '{path}' is a file")
    return path


def exists(path):
    return bool(path) and Path(path).is_dir()


def files(path):
    """All files below path, recursively, sorted."""
    path = _existing(path, "path", "queried for files")
    found = sorted(f for f in path.rglob("*") if f.is_file())
    log.emit("io", op="files", path=str(path), count=len(found))
    return found


def copy(src, dest):
    """Copy the tree src into dest, merging with whatever dest already holds."""
    src = _existing(src, "src", f"copied to '{dest}'")
    dest = _dir_target(dest, "dest")
    log.emit("io", op="copy_directory", src=str(src), dest=str(dest))
    shutil.copytree(src, dest, symlinks=True, dirs_exist_ok=True)


def copy_undo(src, dest, store=None):
    """Copy src into dest; the returned Undo restores dest, or removes it if it was new."""
    src = _existing(src, "src", f"copied to '{dest}'")
    dest = _dir_target(dest, "dest")
    created = _first_missing(dest)

    def revert(store, staged):
        if staged["dest"] is not None:
            store.restore(staged["dest"])
        elif created is not None and created.exists():
            shutil.rmtree(created)

    return compensate(
        "copy_directory", lambda: copy(src, dest), revert,
        stage={"dest": dest if created is None else None},
        store=store, src=str(src), dest=str(dest),
    )


def move(src, dest):
    """Move the directory src to dest. dest must not exist yet."""
    src = _existing(src, "src", f"moved to '{dest}'")
    dest = _path(dest, "dest")
    if dest.exists():
        raise InvalidArgument(f"Cannot move directory '{src}' to '{dest}' because '{dest}' already exists")
    log.emit("io", op="move_directory", src=str(src), dest=str(dest))
    shutil.move(str(src), str(dest))


def move_undo(src, dest, store=None):
    """Move src to dest; the returned Undo removes dest and restores src."""
    src = _existing(src, "src", f"moved to '{dest}'")
    dest = _path(dest, "dest")
    if dest.exists():
        raise InvalidArgument(f"Cannot move directory '{src}' to '{dest}' because '{dest}' already exists")

    def revert(store, staged):
        if dest.exists():
            shutil.rmtree(dest)
        store.restore(staged["src"])

    return compensate(
        "move_directory", lambda: move(src, dest), revert,
        stage={"src": src}, store=store, src=str(src), dest=str(dest),
    )


def delete(path):
    """Delete a directory and everything in it."""
    path = _existing(path, "path", "deleted")
    log.emit("io", op="delete_directory", path=str(path))
    shutil.rmtree(path)


def deletes(paths):
    for path in paths:
        delete(path)


def delete_undo(path, store=None):
    """Delete a directory; the returned Undo brings back the whole tree."""
    path = _existing(path, "path", "deleted")

    def revert(store, staged):
        store.restore(staged["path"])

    return compensate(
        "delete_directory", lambda: delete(path), revert,
        stage={"path": path}, store=store, path=str(path),
    )


def deletes_undo(paths, store=None):
    return collect(lambda p: delete_undo(p, store=store), paths)


def ensure(path):
    """Make sure a directory exists at path, creating parents as needed."""
    path = _dir_target(path, "path")
    path.mkdir(parents=True, exist_ok=True)
    log.emit("io", op="ensure", path=str(path))


def ensures(paths):
    for path in paths:
        ensure(path)


def _first_missing(path):
    """The outermost ancestor of path (or path itself) that doesn't exist yet, or None."""
    path = path.absolute()
    if path.exists():
        return None
    missing = path
    for parent in path.parents:
        if parent.exists():
            break
        missing = parent
    return missing


def ensure_undo(path, store=None):
    """Ensure a directory; the returned Undo puts things back as they were.

    If the directory already existed, its contents at this moment are
    restored. If it didn't, the directory (and any parent created with it) is
    removed. Which of the two applies is decided now, not at release time.
    """
    path = _dir_target(path, "path")
    created = _first_missing(path)

    def revert(store, staged):
        if staged["path"] is not None:
            store.restore(staged["path"])
        elif created.exists():
            shutil.rmtree(created)

    return compensate(
        "ensure", lambda: ensure(path), revert,
        stage={"path": path if created is None else None},
        store=store, path=str(path), existed=created is None,
    )


def ensures_undo(paths, store=None):
    return collect(lambda p: ensure_undo(p, store=store), paths)


def clean(path):
    """Delete every file and subdirectory in path, keeping path itself."""
    path = _existing(path, "path", "cleaned")
    entries = sum(1 for _ in path.iterdir())
    clear_contents(path)
    log.emit("io", op="clean", path=str(path), entries=entries)


def cleans(paths):
    for path in paths:
        clean(path)


def clean_undo(path, store=None):
    """Clean a directory; the returned Undo restores the full pre-clean tree."""
    path = _existing(path, "path", "cleaned")

    def revert(store, staged):
        store.restore(staged["path"])

    return compensate(
        "clean", lambda: clean(path), revert,
        stage={"path": path}, store=store, path=str(path),
    )


def cleans_undo(paths, store=None):
    return collect(lambda p: clean_undo(p, store=store), paths)


def clean_ensure(path):
    """Make sure an empty directory exists at path."""
    ensure(path)
    clean(path)


def clean_ensures(paths):
    for path in paths:
        clean_ensure(path)


def _check_replace(dest, src):
    dest = _existing(dest, "dest", f"replaced by '{src}'")
    src = _existing(src, "src", f"used to replace '{dest}'")
    return dest, src


def replace(dest, src):
    """Make dest an exact copy of src, keeping the dest directory itself."""
    dest, src = _check_replace(dest, src)
    log.emit("io", op="replace_directory", dest=str(dest), src=str(src))
    clear_contents(dest)
    shutil.copytree(src, dest, symlinks=True, dirs_exist_ok=True)


def replace_undo(dest, src, store=None):
    """Replace dest with src; the returned Undo restores the original dest tree."""
    dest, src = _check_replace(dest, src)

    def revert(store, staged):
        store.restore(staged["dest"])

    return compensate(
        "replace_directory", lambda: replace(dest, src), revert,
        stage={"dest": dest}, store=store, dest=str(dest), src=str(src),
    )


def scratch(path):
    """Ensure a directory that the returned Undo deletes, whatever it held before."""
    path = _dir_target(path, "path")
    ensure(path)

    def remove():
        log.emit("undo", op="scratch", path=str(path))
        if path.exists():
            shutil.rmtree(path)

    return Undo(remove, f"scratch {path}")


def set_current_undo(path):
    """Ensure path and make it the working directory until the returned Undo is released."""
    path = _dir_target(path, "path")
    ensure(path)
    return cwd.change(path)
