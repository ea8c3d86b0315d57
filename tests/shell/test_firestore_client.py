"""Tests for the Firestore document store.

Uses unittest.mock in place of the Firestore SDK client.
"""

import pytest
from unittest.mock import MagicMock, Mock, patch

from crimealert.shell.firestore_client import (
    TIMESTAMP_FIELD,
    FirestoreClient,
    FirestoreConfig,
)


def _snapshot(doc_id, data, exists=True):
    snapshot = Mock()
    snapshot.id = doc_id
    snapshot.exists = exists
    snapshot.to_dict.return_value = data
    return snapshot


@pytest.fixture
def sdk():
    return MagicMock()


@pytest.fixture
def client(sdk):
    client = FirestoreClient()
    client._client = sdk
    return client


class TestLazyClient:
    """Tests for lazy SDK client creation."""

    @patch("crimealert.shell.firestore_client.firestore.Client")
    def test_passes_project_and_database(self, mock_client_class):
        client = FirestoreClient(FirestoreConfig(project_id="proj", database="crime"))

        assert client.client is mock_client_class.return_value
        mock_client_class.assert_called_once_with(project="proj", database="crime")

    @patch("crimealert.shell.firestore_client.firestore.Client")
    def test_created_once(self, mock_client_class):
        client = FirestoreClient()
        client.client
        client.client
        mock_client_class.assert_called_once_with()


class TestReadWrite:
    """Tests for create, get, query and update."""

    def test_create_with_server_timestamp(self, client, sdk):
        doc_ref = Mock(id="new-id")
        sdk.collection.return_value.add.return_value = (None, doc_ref)

        doc_id = client.create("alerts", {"type": "Theft"}, server_timestamp=True)

        assert doc_id == "new-id"
        sdk.collection.assert_called_with("alerts")
        written = sdk.collection.return_value.add.call_args[0][0]
        assert written["type"] == "Theft"
        assert TIMESTAMP_FIELD in written

    def test_create_does_not_mutate_record(self, client, sdk):
        sdk.collection.return_value.add.return_value = (None, Mock(id="x"))
        record = {"type": "Theft"}

        client.create("alerts", record, server_timestamp=True)

        assert record == {"type": "Theft"}

    def test_get_existing(self, client, sdk):
        sdk.collection.return_value.document.return_value.get.return_value = _snapshot(
            "i1", {"type": "Theft"},
        )

        assert client.get("alerts", "i1") == {"id": "i1", "type": "Theft"}

    def test_get_missing(self, client, sdk):
        sdk.collection.return_value.document.return_value.get.return_value = _snapshot(
            "i1", None, exists=False,
        )

        assert client.get("alerts", "i1") is None

    def test_query_by_field(self, client, sdk):
        query = sdk.collection.return_value.where.return_value
        query.stream.return_value = [_snapshot("z1", {"userId": "u1"})]

        records = client.query_by_field("zones", "userId", "u1")

        assert records == [{"id": "z1", "userId": "u1"}]
        field_filter = sdk.collection.return_value.where.call_args.kwargs["filter"]
        assert field_filter.field_path == "userId"
        assert field_filter.value == "u1"

    def test_fetch_all_orders_newest_first(self, client, sdk):
        ordered = sdk.collection.return_value.order_by.return_value
        ordered.stream.return_value = [_snapshot("a", {}), _snapshot("b", {})]

        records = client.fetch_all("alerts")

        assert [r["id"] for r in records] == ["a", "b"]
        args, kwargs = sdk.collection.return_value.order_by.call_args
        assert args == (TIMESTAMP_FIELD,)
        assert kwargs["direction"] == "DESCENDING"

    def test_update_and_delete(self, client, sdk):
        document = sdk.collection.return_value.document.return_value

        client.update("alerts", "i1", {"isRead": True})
        client.delete("zones", "z1")

        document.update.assert_called_once_with({"isRead": True})
        document.delete.assert_called_once_with()


class TestSubscribeAll:
    """Tests for the real-time subscription."""

    def test_delivers_full_collection(self, client, sdk):
        ordered = sdk.collection.return_value.order_by.return_value
        on_update = Mock()

        unsubscribe = client.subscribe_all("alerts", on_update)
        callback = ordered.on_snapshot.call_args[0][0]
        callback([_snapshot("a", {"x": 1}), _snapshot("b", {"x": 2})], [], None)

        on_update.assert_called_once_with([{"id": "a", "x": 1}, {"id": "b", "x": 2}])

        unsubscribe()
        ordered.on_snapshot.return_value.unsubscribe.assert_called_once_with()

    def test_unreadable_snapshot_goes_to_on_error(self, client, sdk):
        ordered = sdk.collection.return_value.order_by.return_value
        on_update = Mock()
        on_error = Mock()
        broken = Mock(id="bad")
        broken.to_dict.side_effect = ValueError("corrupt")

        client.subscribe_all("alerts", on_update, on_error)
        callback = ordered.on_snapshot.call_args[0][0]
        callback([broken], [], None)

        on_update.assert_not_called()
        assert isinstance(on_error.call_args[0][0], ValueError)

    def test_failing_listener_goes_to_on_error(self, client, sdk):
        ordered = sdk.collection.return_value.order_by.return_value
        on_update = Mock(side_effect=OverflowError("timestamp out of range"))
        on_error = Mock()

        client.subscribe_all("alerts", on_update, on_error)
        callback = ordered.on_snapshot.call_args[0][0]
        callback([_snapshot("a", {"x": 1})], [], None)

        on_update.assert_called_once_with([{"id": "a", "x": 1}])
        assert isinstance(on_error.call_args[0][0], OverflowError)


class TestUpdateInTransaction:
    """Tests for transactional read-modify-write."""

    @pytest.fixture(autouse=True)
    def plain_transactional(self):
        with patch(
            "crimealert.shell.firestore_client.firestore.transactional",
            side_effect=lambda fn: fn,
        ):
            yield

    def test_writes_mutated_fields(self, client, sdk):
        doc_ref = sdk.collection.return_value.document.return_value
        doc_ref.get.return_value = _snapshot("i1", {"confirmedBy": []})
        transaction = sdk.transaction.return_value

        fields = client.update_in_transaction(
            "alerts",
            "i1",
            lambda record: {"confirmedBy": record["confirmedBy"] + ["u1"]},
        )

        assert fields == {"confirmedBy": ["u1"]}
        doc_ref.get.assert_called_once_with(transaction=transaction)
        transaction.update.assert_called_once_with(doc_ref, {"confirmedBy": ["u1"]})

    def test_missing_document_passes_none(self, client, sdk):
        doc_ref = sdk.collection.return_value.document.return_value
        doc_ref.get.return_value = _snapshot("i1", None, exists=False)
        seen = []

        client.update_in_transaction("alerts", "i1", lambda r: seen.append(r) or {})

        assert seen == [None]

    def test_error_in_mutate_writes_nothing(self, client, sdk):
        doc_ref = sdk.collection.return_value.document.return_value
        doc_ref.get.return_value = _snapshot("i1", {})
        transaction = sdk.transaction.return_value

        def reject(record):
            raise RuntimeError("rejected")

        with pytest.raises(RuntimeError):
            client.update_in_transaction("alerts", "i1", reject)

        transaction.update.assert_not_called()
