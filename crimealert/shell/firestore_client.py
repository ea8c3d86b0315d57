"""Firestore Client - Imperative Shell.

This module is the document store shared by incidents and zones. It
exposes create, get, query-by-field, ordered full fetch, real-time
subscription, update, delete and a transactional read-modify-write.
Uses Google Cloud Firestore.

All I/O is contained here; parsing and validation are in the core module.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter


logger = logging.getLogger(__name__)


# Field holding the store-assigned creation time
TIMESTAMP_FIELD = "timestamp"


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """
    project_id: str | None = None
    database: str | None = None


def _snapshot_to_record(snapshot: Any) -> dict[str, Any]:
    """Flatten a document snapshot into a dict with its ID under "id"."""
    return {"id": snapshot.id, **(snapshot.to_dict() or {})}


class FirestoreClient:
    """Client for reading and writing documents in Firestore.

    This is part of the imperative shell - it handles database I/O.
    Errors from Firestore propagate to the caller.
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs = {}
            if self.config.project_id:
                kwargs['project'] = self.config.project_id
            if self.config.database:
                kwargs['database'] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _collection(self, name: str) -> Any:
        return self.client.collection(name)

    def create(
        self,
        collection: str,
        record: dict[str, Any],
        server_timestamp: bool = False,
    ) -> str:
        """Create a document with a generated ID.

        Args:
            collection: Collection name
            record: Document fields
            server_timestamp: Set TIMESTAMP_FIELD to the server time

        Returns:
            The new document ID
        """
        data = dict(record)
        if server_timestamp:
            data[TIMESTAMP_FIELD] = firestore.SERVER_TIMESTAMP

        _, doc_ref = self._collection(collection).add(data)
        logger.info("Created document %s/%s", collection, doc_ref.id)
        return doc_ref.id

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Fetch a single document.

        Returns:
            Document record, or None if it does not exist
        """
        snapshot = self._collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return _snapshot_to_record(snapshot)

    def query_by_field(
        self,
        collection: str,
        field: str,
        value: Any,
    ) -> list[dict[str, Any]]:
        """Fetch all documents where field equals value."""
        query = self._collection(collection).where(filter=FieldFilter(field, "==", value))
        records = [_snapshot_to_record(s) for s in query.stream()]

        logger.info(
            "Fetched %d documents from %s where %s matches",
            len(records),
            collection,
            field,
        )
        return records

    def _newest_first(self, collection: str) -> Any:
        return self._collection(collection).order_by(
            TIMESTAMP_FIELD,
            direction=firestore.Query.DESCENDING,
        )

    def fetch_all(self, collection: str) -> list[dict[str, Any]]:
        """Fetch every document, newest first by TIMESTAMP_FIELD."""
        records = [_snapshot_to_record(s) for s in self._newest_first(collection).stream()]
        logger.info("Fetched %d documents from %s", len(records), collection)
        return records

    def subscribe_all(
        self,
        collection: str,
        on_update: Callable[[list[dict[str, Any]]], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Callable[[], None]:
        """Subscribe to every document, newest first.

        on_update receives the full collection on every change, not a diff.
        Firestore invokes it from a background thread. A snapshot that
        cannot be read, or that on_update fails on, is passed to on_error
        instead of escaping into the watch thread.

        Returns:
            Function that cancels the subscription
        """
        def _on_snapshot(snapshots: list[Any], changes: Any, read_time: Any) -> None:
            try:
                records = [_snapshot_to_record(s) for s in snapshots]
                on_update(records)
            except Exception as e:
                logger.error("Failed to handle %s snapshot: %s", collection, str(e))
                if on_error is not None:
                    on_error(e)

        watch = self._newest_first(collection).on_snapshot(_on_snapshot)
        logger.info("Subscribed to %s", collection)

        def unsubscribe() -> None:
            watch.unsubscribe()
            logger.info("Unsubscribed from %s", collection)

        return unsubscribe

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Update fields of an existing document."""
        self._collection(collection).document(doc_id).update(fields)
        logger.info("Updated document %s/%s", collection, doc_id)

    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document."""
        self._collection(collection).document(doc_id).delete()
        logger.info("Deleted document %s/%s", collection, doc_id)

    def update_in_transaction(
        self,
        collection: str,
        doc_id: str,
        mutate: Callable[[dict[str, Any] | None], dict[str, Any]],
    ) -> dict[str, Any]:
        """Read a document, compute an update, and write it atomically.

        mutate receives the current record (None if missing) and returns
        the fields to update. An exception from mutate aborts the
        transaction without writing anything.

        Returns:
            The fields that were written
        """
        doc_ref = self._collection(collection).document(doc_id)

        @firestore.transactional
        def _apply(transaction: Any) -> dict[str, Any]:
            snapshot = doc_ref.get(transaction=transaction)
            record = _snapshot_to_record(snapshot) if snapshot.exists else None
            fields = mutate(record)
            transaction.update(doc_ref, fields)
            return fields

        fields = _apply(self.client.transaction())
        logger.info("Transactionally updated %s/%s", collection, doc_id)
        return fields
