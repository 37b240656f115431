"""
Tests for the Mongo Store — replace-all semantics.
"""

from unittest import mock

import pytest
from pymongo.errors import AutoReconnect, ServerSelectionTimeoutError

from resource_sync.errors import StoreError
from resource_sync.store.mongo import MongoStore


class TestReplaceAll:

    def test_inserts_in_order(self, collection):
        store = MongoStore(collection)
        records = [{"id": "r1"}, {"id": "r2"}, {"id": "r3"}]

        inserted = store.replace_all(records)

        assert inserted == 3
        assert collection.records() == records

    def test_second_call_leaves_no_residue(self, collection):
        """Two syncs in a row → only the second record set remains."""
        store = MongoStore(collection)

        store.replace_all([{"id": "old1"}, {"id": "old2"}, {"id": "old3"}])
        store.replace_all([{"id": "new1"}])

        assert collection.records() == [{"id": "new1"}]

    def test_empty_record_set_clears_collection(self, collection):
        store = MongoStore(collection)
        store.replace_all([{"id": "x"}])

        assert store.replace_all([]) == 0
        assert collection.records() == []

    def test_input_records_not_mutated(self, collection):
        """insert_one adds _id; the loader's list must stay clean."""
        records = [{"id": "r1"}]

        MongoStore(collection).replace_all(records)

        assert records == [{"id": "r1"}]

    def test_non_object_record_rejected_before_delete(self, collection):
        store = MongoStore(collection)
        store.replace_all([{"id": "keep"}])

        with pytest.raises(StoreError, match="not a JSON object"):
            store.replace_all([{"id": "ok"}, "just a string"])

        assert collection.records() == [{"id": "keep"}]

    def test_insert_failure_leaves_partial_collection(self):
        """Not transactional: delete happened, refill stopped part way."""
        coll = mock.MagicMock()
        coll.insert_one.side_effect = [None, AutoReconnect("connection lost")]

        with pytest.raises(StoreError, match="connection lost"):
            MongoStore(coll).replace_all([{"id": 1}, {"id": 2}, {"id": 3}])

        coll.delete_many.assert_called_once_with({})
        assert coll.insert_one.call_count == 2

    def test_delete_failure(self):
        coll = mock.MagicMock()
        coll.delete_many.side_effect = AutoReconnect("down")

        with pytest.raises(StoreError):
            MongoStore(coll).replace_all([{"id": 1}])

        coll.insert_one.assert_not_called()


class TestCount:

    def test_count(self, collection):
        store = MongoStore(collection)
        store.replace_all([{"id": 1}, {"id": 2}])

        assert store.count() == 2

    def test_count_failure(self):
        coll = mock.MagicMock()
        coll.count_documents.side_effect = AutoReconnect("down")

        with pytest.raises(StoreError):
            MongoStore(coll).count()


class TestConnect:

    @mock.patch("resource_sync.store.mongo.MongoClient")
    def test_connect_pings_and_selects_collection(self, mock_client_cls):
        client = mock.MagicMock()
        mock_client_cls.return_value = client

        store = MongoStore.connect("mongodb://db:27017", "sgci", "resources", timeout_ms=1234)

        mock_client_cls.assert_called_once_with("mongodb://db:27017", serverSelectionTimeoutMS=1234)
        client.admin.command.assert_called_once_with("ping")
        assert store.collection is client["sgci"]["resources"]

    @mock.patch("resource_sync.store.mongo.MongoClient")
    def test_connect_failure(self, mock_client_cls):
        mock_client_cls.return_value.admin.command.side_effect = (
            ServerSelectionTimeoutError("no servers")
        )

        with pytest.raises(StoreError, match="no servers"):
            MongoStore.connect("mongodb://db:27017", "sgci", "resources")

    @mock.patch("resource_sync.store.mongo.MongoClient")
    def test_close(self, mock_client_cls):
        client = mock_client_cls.return_value
        store = MongoStore.connect("mongodb://db:27017", "sgci", "resources")

        store.close()
        store.close()

        client.close.assert_called_once()
