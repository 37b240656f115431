"""
Mongo Store — Full replace-all refresh of the target collection.

Every sync deletes all documents and inserts the freshly loaded records
one by one. The refresh is not transactional: a failure part way through
leaves the collection partially refilled until the monitor's next tick
retries the sync.

## Usage

    from resource_sync.store.mongo import MongoStore

    store = MongoStore.connect(url, "sgci", "resources")
    store.replace_all(records)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from ..errors import StoreError

logger = logging.getLogger(__name__)


class MongoStore:
    """The collection the records are mirrored into."""

    def __init__(self, collection: Collection, client: Optional[MongoClient] = None):
        self.collection = collection
        self._client = client

    @classmethod
    def connect(
        cls,
        url: str,
        db_name: str,
        collection_name: str,
        timeout_ms: int = 5000,
    ) -> "MongoStore":
        """
        Open a client and check the server answers.

        Raises:
            StoreError: Bad connection string or server unreachable
        """
        try:
            client: MongoClient = MongoClient(url, serverSelectionTimeoutMS=int(timeout_ms))
            client.admin.command("ping")
        except PyMongoError as e:
            raise StoreError(f"Cannot connect to MongoDB: {e}") from e

        logger.info(f"Connected to MongoDB (db={db_name}, collection={collection_name})")
        return cls(client[db_name][collection_name], client=client)

    def replace_all(self, records: Iterable[Any]) -> int:
        """
        Delete every document, then insert each record in order.

        Returns:
            Number of records inserted

        Raises:
            StoreError: A record is not a JSON object, or MongoDB failed
        """
        docs: List[dict] = []
        for index, record in enumerate(records):
            if not isinstance(record, Mapping):
                raise StoreError(
                    f"Record {index} is a {type(record).__name__}, not a JSON object"
                )
            # insert_one adds _id to the document it is given
            docs.append(dict(record))

        logger.info("Updating mongo collection")
        try:
            deleted = self.collection.delete_many({})
            logger.debug(f"Deleted {deleted.deleted_count} document(s)")

            for doc in docs:
                self.collection.insert_one(doc)
        except PyMongoError as e:
            raise StoreError(f"Replacing collection contents failed: {e}") from e

        logger.info(f"Completed updating mongo collection ({len(docs)} document(s))")
        return len(docs)

    def count(self) -> int:
        """Number of documents currently in the collection."""
        try:
            return self.collection.count_documents({})
        except PyMongoError as e:
            raise StoreError(f"Counting documents failed: {e}") from e

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
