"""File-backed snapshot store: one `<repo name>.json` per repository, used for dump and offline replay."""

import logging
from pathlib import Path

from pydantic import ValidationError

from ghaudit.application.exceptions import PersistenceError
from ghaudit.domain.models import AuditInput

logger = logging.getLogger(__name__)

SNAPSHOT_SUFFIX = ".json"


class SnapshotStore:
    """
    Writes serialized AuditInput documents into a directory and reads them back.
    The file name is the repository name; the key when loading is the full name.
    """

    def __init__(self, directory: Path | str) -> None:
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, snapshot: AuditInput) -> Path:
        return self._dir / f"{snapshot.repo.name}{SNAPSHOT_SUFFIX}"

    def prepare(self) -> None:
        """Create the dump directory if missing."""
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(
                "failed to create snapshot directory", path=str(self._dir)
            ) from e

    def save(self, snapshot: AuditInput) -> Path:
        path = self.path_for(snapshot)
        try:
            path.write_text(snapshot.model_dump_json(), encoding="utf-8")
        except OSError as e:
            raise PersistenceError(
                "failed to persist snapshot",
                path=str(path),
                repo=snapshot.repo.full_name,
            ) from e
        logger.debug(
            "snapshot_persisted",
            extra={"repo": snapshot.repo.full_name, "path": str(path)},
        )
        return path

    def load_all(self) -> dict[str, AuditInput]:
        """Load every *.json below the directory, keyed by owner/name."""
        if not self._dir.is_dir():
            raise PersistenceError("snapshot directory not found", path=str(self._dir))

        snapshots: dict[str, AuditInput] = {}
        for path in sorted(self._dir.rglob(f"*{SNAPSHOT_SUFFIX}")):
            if not path.is_file():
                continue
            try:
                snapshot = AuditInput.model_validate_json(path.read_bytes())
            except (OSError, ValidationError) as e:
                raise PersistenceError("failed to load snapshot", path=str(path)) from e
            snapshots[snapshot.repo.full_name] = snapshot

        logger.info(
            "snapshots_loaded",
            extra={"count": len(snapshots), "path": str(self._dir)},
        )
        return snapshots
