"""
Mind map persistence - one JSON document per mind map.

The editor talks to storage only through the MindMapStore protocol, so
anything with load/save can stand in (a database, a web API, a dict in a
test). JsonFileStore is the local default:

    <root>/<id>.json    msgspec-encoded MindMap, camelCase keys

Loading only decodes. Structural validation (single center, parent
references, group uniqueness) happens when the editor rebuilds a MindMapDB
from the loaded nodes.
"""
import logging
import re
from pathlib import Path
from typing import List, Optional, Protocol, runtime_checkable

import msgspec

from core.schemas import (
    MindMap,
    generate_id,
    now_utc,
    serialize_mind_map,
    deserialize_mind_map,
)

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class PersistenceError(Exception):
    """Raised when a stored mind map cannot be read or written."""
    pass


@runtime_checkable
class MindMapStore(Protocol):
    """Load/save collaborator used by MindMapEditor."""

    def load(self, mind_map_id: str) -> Optional[MindMap]:
        ...

    def save(self, mind_map: MindMap) -> MindMap:
        ...


class JsonFileStore:
    """Directory of <id>.json files."""

    DEFAULT_ROOT = Path("data/mind_maps")

    def __init__(self, root: Path | str | None = None):
        """
        Args:
            root: Directory holding the documents (defaults to data/mind_maps)
        """
        self.root = Path(root) if root else self.DEFAULT_ROOT
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, mind_map_id: str) -> Path:
        if not _SAFE_ID.match(mind_map_id or ""):
            raise PersistenceError(f"Invalid mind map id: {mind_map_id!r}")
        return self.root / f"{mind_map_id}.json"

    def load(self, mind_map_id: str) -> Optional[MindMap]:
        """
        Read a mind map.

        Returns:
            The decoded record, or None when no document has this id

        Raises:
            PersistenceError: The document exists but is not a valid MindMap
        """
        path = self._path(mind_map_id)
        if not path.exists():
            return None

        try:
            mind_map = deserialize_mind_map(path.read_bytes())
        except (msgspec.DecodeError, OSError) as e:
            raise PersistenceError(f"Cannot read mind map {mind_map_id}: {e}") from e

        if not mind_map.id:
            mind_map.id = mind_map_id
        logger.debug(f"Loaded mind map {mind_map_id} ({len(mind_map.nodes)} nodes)")
        return mind_map

    def save(self, mind_map: MindMap) -> MindMap:
        """Write a mind map, assigning an id if it has none. Returns the stored record."""
        if not mind_map.id:
            mind_map.id = generate_id()
        mind_map.updated_at = now_utc()

        path = self._path(mind_map.id)
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_bytes(serialize_mind_map(mind_map))
            tmp.replace(path)
        except OSError as e:
            raise PersistenceError(f"Cannot write mind map {mind_map.id}: {e}") from e

        logger.info(f"Saved mind map {mind_map.id} '{mind_map.name}' ({len(mind_map.nodes)} nodes)")
        return mind_map

    def list_ids(self) -> List[str]:
        """Ids of every stored mind map, sorted."""
        return sorted(p.stem for p in self.root.glob("*.json"))

    def delete(self, mind_map_id: str) -> bool:
        """Remove a stored mind map. Returns False if it did not exist."""
        path = self._path(mind_map_id)
        if not path.exists():
            return False
        path.unlink()
        return True
