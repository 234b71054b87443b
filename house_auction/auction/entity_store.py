"""
In-process document store backing the auction.

Holds players, teams, bids and the settings singleton as plain dict documents
grouped by collection. Every operation runs under one re-entrant lock, so a
single update is atomic with respect to every other reader and writer, and
``transaction()`` extends that guarantee to a group of writes.

When a checkpoint path is configured, each committed change is written to a
JSON file using an atomic temp-file + rename, so the file on disk is never
half-written and the store can be restored after a crash.
"""

import copy
import json
import logging
import os
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Callable, Dict, Iterator, List, Optional

from .errors import StoreFailureError

logger = logging.getLogger(__name__)

PLAYERS = 'players'
TEAMS = 'teams'
BIDS = 'bids'
SETTINGS = 'settings'

COLLECTIONS = (PLAYERS, TEAMS, BIDS, SETTINGS)


def _matches(document: dict, filter: Optional[dict]) -> bool:
    if not filter:
        return True
    return all(document.get(key) == value for key, value in filter.items())


class CheckpointLock:
    """
    Exclusive owner marker for a checkpoint file.

    Only one process may write a given checkpoint: the server rewrites the
    whole file from memory on every commit, so a second writer's changes
    would be silently overwritten. The lock is a ``<checkpoint>.lock`` file
    created with O_EXCL and holding the owner's PID. A lock left behind by a
    killed process must be removed by hand.
    """

    def __init__(self, checkpoint_path: Path):
        self.path = Path(checkpoint_path).with_suffix('.lock')
        self._held = False

    def acquire(self) -> None:
        """
        Raises:
            StoreFailureError: If another process holds the lock
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            raise StoreFailureError(
                f"Checkpoint is in use by process {self._owner()}; stop it or remove {self.path}"
            )
        except OSError as e:
            raise StoreFailureError(f"Failed to create lock {self.path}: {e}") from e

        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(str(os.getpid()))
        self._held = True
        logger.debug(f"Acquired checkpoint lock {self.path}")

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning(f"Checkpoint lock {self.path} already removed")
        logger.debug(f"Released checkpoint lock {self.path}")

    def _owner(self) -> str:
        try:
            return self.path.read_text(encoding='utf-8').strip() or 'unknown'
        except OSError:
            return 'unknown'

    def __enter__(self) -> 'CheckpointLock':
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()


class EntityStore:
    """Thread-safe document store with snapshot transactions."""

    def __init__(self, checkpoint_path: Optional[Path] = None):
        """
        Initialize an empty store.

        Args:
            checkpoint_path: Optional JSON file written after every commit
        """
        self.checkpoint_path = Path(checkpoint_path) if checkpoint_path else None
        self._collections: Dict[str, Dict[str, dict]] = {name: {} for name in COLLECTIONS}
        self._lock = RLock()
        self._tx_depth = 0

    # ----- reads -----

    def find_by_id(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            document = self._docs(collection).get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    def find_one(self, collection: str, filter: Optional[dict] = None) -> Optional[dict]:
        with self._lock:
            for document in self._docs(collection).values():
                if _matches(document, filter):
                    return copy.deepcopy(document)
            return None

    def find(
        self,
        collection: str,
        filter: Optional[dict] = None,
        sort_key: Optional[Callable[[dict], object]] = None,
        reverse: bool = False
    ) -> List[dict]:
        """
        Return copies of every matching document.

        Args:
            collection: Collection name
            filter: Field -> value equality filter (None matches all)
            sort_key: Optional key function for ordering results
            reverse: Sort descending when True

        Returns:
            List of documents in insertion order unless sort_key is given
        """
        with self._lock:
            results = [
                copy.deepcopy(document)
                for document in self._docs(collection).values()
                if _matches(document, filter)
            ]
        if sort_key is not None:
            results.sort(key=sort_key, reverse=reverse)
        return results

    def count(self, collection: str, filter: Optional[dict] = None) -> int:
        with self._lock:
            return sum(1 for d in self._docs(collection).values() if _matches(d, filter))

    # ----- writes -----

    def create(self, collection: str, document: dict) -> dict:
        """
        Insert a new document.

        Raises:
            ValueError: If the document has no id or the id already exists
        """
        doc_id = document.get('id')
        if not doc_id:
            raise ValueError(f"Document for '{collection}' has no id")

        with self.transaction():
            docs = self._docs(collection)
            if doc_id in docs:
                raise ValueError(f"Duplicate id '{doc_id}' in '{collection}'")
            docs[doc_id] = copy.deepcopy(document)
            return copy.deepcopy(docs[doc_id])

    def update_one(
        self,
        collection: str,
        filter: dict,
        patch: Optional[dict] = None,
        push: Optional[dict] = None
    ) -> Optional[dict]:
        """
        Atomically update the first document matching the filter.

        The filter doubles as a compare-and-swap guard: including the
        previously read value of a field makes the update a no-op when another
        writer changed that field in between.

        Args:
            collection: Collection name
            filter: Field -> value equality filter
            patch: Fields to overwrite
            push: Field -> item to append to a list field

        Returns:
            The updated document, or None when nothing matched
        """
        with self.transaction():
            for document in self._docs(collection).values():
                if not _matches(document, filter):
                    continue
                for key, value in (patch or {}).items():
                    document[key] = copy.deepcopy(value)
                for key, item in (push or {}).items():
                    document.setdefault(key, []).append(copy.deepcopy(item))
                return copy.deepcopy(document)
            return None

    def delete_many(self, collection: str, filter: Optional[dict] = None) -> int:
        """Delete every matching document and return how many were removed."""
        with self.transaction():
            docs = self._docs(collection)
            doomed = [doc_id for doc_id, d in docs.items() if _matches(d, filter)]
            for doc_id in doomed:
                del docs[doc_id]
            return len(doomed)

    @contextmanager
    def transaction(self) -> Iterator['EntityStore']:
        """
        Group writes into one all-or-nothing unit.

        Other threads are blocked for the duration. On any exception the
        collections are restored to the snapshot taken on entry and the
        exception propagates. Nested transactions join the outer one.
        """
        with self._lock:
            snapshot = copy.deepcopy(self._collections) if self._tx_depth == 0 else None
            self._tx_depth += 1
            try:
                yield self
            except BaseException:
                self._tx_depth -= 1
                if snapshot is not None:
                    self._collections = snapshot
                    logger.warning("Transaction rolled back")
                raise
            self._tx_depth -= 1
            if self._tx_depth == 0:
                try:
                    self._commit()
                except StoreFailureError:
                    self._collections = snapshot
                    logger.error("Transaction rolled back: checkpoint write failed")
                    raise

    @contextmanager
    def consistent_read(self) -> Iterator['EntityStore']:
        """Hold off writers while several reads are assembled into one view."""
        with self._lock:
            yield self

    # ----- checkpointing -----

    def save_checkpoint(self, filepath: Optional[Path] = None) -> None:
        """
        Write all collections to JSON.

        Args:
            filepath: Target file (defaults to the configured checkpoint path)

        Raises:
            StoreFailureError: If the file cannot be written
        """
        filepath = Path(filepath) if filepath else self.checkpoint_path
        if filepath is None:
            return

        with self._lock:
            checkpoint_data = {
                'collections': self._collections,
                'checkpoint_time': datetime.now().isoformat()
            }
            try:
                filepath.parent.mkdir(parents=True, exist_ok=True)

                # Atomic write: write to temp file, then rename
                temp_path = filepath.with_suffix('.tmp')
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(checkpoint_data, f, indent=2)
                temp_path.replace(filepath)
            except OSError as e:
                logger.error(f"Failed to write checkpoint {filepath}: {e}")
                raise StoreFailureError(f"Failed to persist auction state: {e}") from e

        logger.debug(f"Saved checkpoint → {filepath}")

    @classmethod
    def load_checkpoint(cls, filepath: Path) -> 'EntityStore':
        """
        Load a store from a JSON checkpoint, or start empty if none exists.

        Args:
            filepath: Checkpoint file; also used for subsequent writes

        Returns:
            EntityStore bound to the checkpoint path
        """
        store = cls(checkpoint_path=filepath)
        filepath = Path(filepath)
        if not filepath.exists():
            logger.info(f"No checkpoint at {filepath}, starting with an empty store")
            return store

        with open(filepath, 'r', encoding='utf-8') as f:
            checkpoint_data = json.load(f)

        for name, documents in checkpoint_data.get('collections', {}).items():
            store._collections[name] = documents

        logger.info(
            f"Loaded checkpoint: {len(store._collections[PLAYERS])} players, "
            f"{len(store._collections[TEAMS])} teams ← {filepath}"
        )
        return store

    # ----- internals -----

    def _docs(self, collection: str) -> Dict[str, dict]:
        if collection not in self._collections:
            raise ValueError(f"Unknown collection: {collection}")
        return self._collections[collection]

    def _commit(self) -> None:
        # Writes inside a transaction are flushed once, when it completes
        if self._tx_depth == 0 and self.checkpoint_path is not None:
            self.save_checkpoint()
