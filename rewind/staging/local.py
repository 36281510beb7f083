import json
import shutil
import tempfile
import uuid
from datetime import datetime
from pathlib import Path

from rewind.errors import InvalidArgument, NotFound
from rewind.staging.base import DIRECTORY, FILE, StagedSnapshot, StagingStore

STAGING_DIR = Path(tempfile.gettempdir()) / "rewind-staging"

META_FILE = ".rewind_meta"
PAYLOAD = "payload"


def clear_contents(directory):
    """Delete every file and subdirectory below directory, keeping directory itself."""
    for entry in Path(directory).iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()


class LocalStagingStore(StagingStore):
    """Stages copies on local disk under <root>/<id>/.

    Each entry holds the copy itself (`payload`) next to a `.rewind_meta`
    file naming the source, so copies leaked by a handle that was never
    released can still be listed and reclaimed.
    """

    def __init__(self, root=None):
        self.root = Path(root) if root else STAGING_DIR

    def stage(self, path):
        if not path:
            raise InvalidArgument("Cannot stage an empty path")
        source = Path(path).absolute()
        if not source.exists():
            raise NotFound(f"Cannot stage '{source}' because it doesn't exist")

        kind = DIRECTORY if source.is_dir() else FILE
        snapshot_id = uuid.uuid4().hex[:12]
        staging_path = self.root / snapshot_id
        staging_path.mkdir(parents=True)

        payload = staging_path / PAYLOAD
        try:
            (staging_path / META_FILE).write_text(
                json.dumps({"source": str(source), "kind": kind})
            )
            if kind == DIRECTORY:
                shutil.copytree(source, payload, symlinks=True)
            else:
                shutil.copy2(source, payload)
        except Exception:
            shutil.rmtree(staging_path, ignore_errors=True)
            raise

        return StagedSnapshot(id=snapshot_id, source=source, staged=payload, kind=kind)

    def restore(self, snapshot, destination=None):
        if not snapshot.staged.exists():
            raise NotFound(
                f"Staged copy {snapshot.id} of '{snapshot.source}' is missing, cannot restore"
            )
        target = Path(destination) if destination else snapshot.source

        if snapshot.is_directory:
            if target.is_symlink() or target.is_file():
                target.unlink()
            target.mkdir(parents=True, exist_ok=True)
            clear_contents(target)
            shutil.copytree(snapshot.staged, target, symlinks=True, dirs_exist_ok=True)
        else:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(snapshot.staged, target)

        return target

    def discard(self, snapshot):
        staging_path = self.root / snapshot.id
        if staging_path.exists():
            shutil.rmtree(staging_path)

    def list(self):
        if not self.root.exists():
            return []

        staged = []
        for entry in sorted(self.root.iterdir()):
            meta_file = entry / META_FILE
            if not meta_file.exists():
                continue
            try:
                meta = json.loads(meta_file.read_text())
            except (json.JSONDecodeError, OSError):
                continue
            mtime = entry.stat().st_mtime
            staged.append({
                "id": entry.name,
                "source": meta.get("source", ""),
                "kind": meta.get("kind", ""),
                "mtime": mtime,
                "created": datetime.fromtimestamp(mtime).strftime("%Y-%m-%d %H:%M"),
            })

        return sorted(staged, key=lambda s: s["mtime"])

    def snapshot(self, snapshot_id):
        """Rebuild the StagedSnapshot for a listed id, e.g. to discard a leaked copy."""
        staging_path = self.root / snapshot_id
        meta_file = staging_path / META_FILE
        if not meta_file.exists():
            raise NotFound(f"Staged copy {snapshot_id} not found in {self.root}")
        meta = json.loads(meta_file.read_text())
        return StagedSnapshot(
            id=snapshot_id,
            source=Path(meta["source"]),
            staged=staging_path / PAYLOAD,
            kind=meta["kind"],
        )
