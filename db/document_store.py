from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Optional, Protocol, Tuple

import firebase_admin
from firebase_admin import db as rtdb
from firebase_admin.exceptions import FirebaseError

from shared.config import WriteMode
from store.errors import BackendError, ConflictError

logger = logging.getLogger(__name__)

Mutator = Callable[[Any], Any]
ValueCallback = Callable[[Any], None]

# firebase_admin.db.Reference.transaction retry limit
TRANSACTION_ATTEMPTS = 25


class Listener(Protocol):
    def close(self) -> None: ...


class DocumentStore:
    """
    A JSON tree addressed by slash-delimited paths.

    Backends implement the five primitives; `read_modify_write` is the only
    way the chat accessors mutate array-valued nodes.
    """

    def get(self, path: str) -> Any:
        raise NotImplementedError

    def get_with_etag(self, path: str) -> Tuple[Any, str]:
        raise NotImplementedError

    def set(self, path: str, value: Any) -> None:
        raise NotImplementedError

    def update(self, path: str, fields: dict) -> None:
        raise NotImplementedError

    def set_if_unchanged(self, path: str, etag: str, value: Any) -> bool:
        raise NotImplementedError

    def listen(self, path: str, callback: ValueCallback) -> Listener:
        """Call `callback(value)` with the current value now and after every change."""
        raise NotImplementedError

    def read_modify_write(
        self,
        path: str,
        mutate: Mutator,
        *,
        mode: WriteMode = "etag",
        max_attempts: int = 5,
    ) -> Any:
        """
        Read the node, hand a private copy to `mutate`, write back what it returns.

        "etag": the write only lands if the node is unchanged since the read,
        otherwise re-read and re-apply, raising ConflictError after `max_attempts`.
        "overwrite": unconditional whole-node write; a concurrent writer's
        update can be lost.
        Exceptions raised by `mutate` abort without writing.
        """
        for attempt in range(1, max_attempts + 1):
            current, etag = self.get_with_etag(path)
            new_value = mutate(copy.deepcopy(current))

            if mode == "overwrite":
                self.set(path, new_value)
                return new_value

            if self.set_if_unchanged(path, etag, new_value):
                if attempt > 1:
                    logger.info("[DB] '%s' written after %d attempts", path, attempt)
                return new_value
            logger.warning("[DB] stale etag for '%s' (attempt %d/%d)", path, attempt, max_attempts)

        raise ConflictError(path, max_attempts)


class FirebaseDocumentStore(DocumentStore):
    """firebase_admin Realtime Database backend."""

    def __init__(self, app: Optional[firebase_admin.App] = None, root: Optional[rtdb.Reference] = None):
        self.root = root if root is not None else rtdb.reference("/", app=app)

    def _ref(self, path: str) -> rtdb.Reference:
        return self.root.child(path)

    def get(self, path: str) -> Any:
        try:
            return self._ref(path).get()
        except FirebaseError as e:
            logger.error("[DB] get '%s' failed: %s", path, e)
            raise BackendError("get", path) from e

    def get_with_etag(self, path: str) -> Tuple[Any, str]:
        try:
            value, etag = self._ref(path).get(etag=True)
            return value, etag
        except FirebaseError as e:
            logger.error("[DB] get '%s' failed: %s", path, e)
            raise BackendError("get", path) from e

    def set(self, path: str, value: Any) -> None:
        try:
            if value is None:
                self._ref(path).delete()
            else:
                self._ref(path).set(value)
        except FirebaseError as e:
            logger.error("[DB] set '%s' failed: %s", path, e)
            raise BackendError("set", path) from e

    def update(self, path: str, fields: dict) -> None:
        try:
            self._ref(path).update(fields)
        except FirebaseError as e:
            logger.error("[DB] update '%s' failed: %s", path, e)
            raise BackendError("update", path) from e

    def set_if_unchanged(self, path: str, etag: str, value: Any) -> bool:
        try:
            success, _, _ = self._ref(path).set_if_unchanged(etag, value)
            return success
        except FirebaseError as e:
            logger.error("[DB] conditional set '%s' failed: %s", path, e)
            raise BackendError("set_if_unchanged", path) from e

    def read_modify_write(
        self,
        path: str,
        mutate: Mutator,
        *,
        mode: WriteMode = "etag",
        max_attempts: int = 5,
    ) -> Any:
        """
        "etag" mode runs as a database transaction: the SDK re-applies `mutate`
        on a stale etag and gives up after its own retry limit, so
        `max_attempts` only applies to the other backends.
        """
        if mode == "overwrite":
            return super().read_modify_write(path, mutate, mode=mode, max_attempts=max_attempts)

        try:
            return self._ref(path).transaction(lambda current: mutate(copy.deepcopy(current)))
        except rtdb.TransactionAbortedError as e:
            logger.warning("[DB] transaction on '%s' aborted: %s", path, e)
            raise ConflictError(path, TRANSACTION_ATTEMPTS) from e
        except FirebaseError as e:
            logger.error("[DB] transaction on '%s' failed: %s", path, e)
            raise BackendError("transaction", path) from e

    def listen(self, path: str, callback: ValueCallback) -> Listener:
        ref = self._ref(path)

        # Events carry patches relative to `path`; re-read the whole node instead.
        def _on_event(event: rtdb.Event) -> None:
            try:
                callback(ref.get())
            except FirebaseError as e:
                logger.error("[DB] refresh after event on '%s' failed: %s", path, e)

        try:
            return ref.listen(_on_event)
        except FirebaseError as e:
            raise BackendError("listen", path) from e
