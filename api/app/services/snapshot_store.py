"""Snapshot store: write-once content storage keyed by version id."""
import copy
import hashlib
import logging
from typing import Any

from sqlalchemy.orm import Session

from app.core.errors import EntityNotFound, InvalidCatalogState
from app.core.snapshot_diff import canonical_json
from app.models.catalog_snapshot import CatalogSnapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Get/put serialized catalog content by version identifier.

    Callers receive copies, so content read back can never be mutated
    in place through the session's identity map.
    """

    def __init__(self, db: Session):
        self.db = db

    def put(self, version_id: int, content: Any) -> CatalogSnapshot:
        if self.db.get(CatalogSnapshot, version_id) is not None:
            raise InvalidCatalogState(
                f"Snapshot for version {version_id} already exists; content is immutable",
                version_id=version_id,
            )
        encoded = canonical_json(content).encode("utf-8")
        snapshot = CatalogSnapshot(
            version_id=version_id,
            content=copy.deepcopy(content),
            size_bytes=len(encoded),
            checksum=hashlib.sha256(encoded).hexdigest(),
        )
        self.db.add(snapshot)
        logger.debug("Stored snapshot for version %s (%d bytes)", version_id, snapshot.size_bytes)
        return snapshot

    def get(self, version_id: int) -> Any:
        snapshot = self.db.get(CatalogSnapshot, version_id)
        if snapshot is None:
            raise EntityNotFound("CatalogSnapshot", version_id)
        return copy.deepcopy(snapshot.content)

    def checksum(self, version_id: int) -> str:
        snapshot = self.db.get(CatalogSnapshot, version_id)
        if snapshot is None:
            raise EntityNotFound("CatalogSnapshot", version_id)
        return snapshot.checksum
