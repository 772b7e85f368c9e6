from decimal import Decimal
from unittest import mock

import pytest
from botocore.exceptions import ClientError

from errors import StoreError


@pytest.fixture
def ddb():
    with mock.patch("ddb_store.boto3") as boto3:
        from ddb_store import DynamoDBStore
        tables = {}
        boto3.resource.return_value.Table.side_effect = lambda name: tables.setdefault(name, mock.MagicMock(name=name))
        store = DynamoDBStore()
        yield store


def _client_error(operation):
    return ClientError({"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}}, operation)


def test_existing_tables_are_not_recreated(ddb):
    assert ddb.client.describe_table.call_count == 5
    ddb.client.create_table.assert_not_called()


def test_select_by_id_uses_get_item(ddb):
    table = ddb.tables["mesa"]
    table.get_item.return_value = {"Item": {"id": Decimal(3), "numero": Decimal(7), "nombre": "Mesa 7"}}

    rows = ddb.select("mesa", {"id": "3"})

    table.get_item.assert_called_once_with(Key={"id": 3})
    assert rows == [{"id": 3, "numero": 7, "nombre": "Mesa 7"}]


def test_select_scans_every_page_and_orders(ddb):
    table = ddb.tables["asiento"]
    table.scan.side_effect = [
        {"Items": [{"id": Decimal(2), "mesa_id": Decimal(1), "posicion": Decimal(1)}],
         "LastEvaluatedKey": {"id": Decimal(2)}},
        {"Items": [{"id": Decimal(1), "mesa_id": Decimal(1), "posicion": Decimal(0)}]},
    ]

    rows = ddb.select("asiento", {"mesa_id": "1"}, order="mesa_id,posicion")

    assert [r["id"] for r in rows] == [1, 2]
    assert table.scan.call_count == 2
    assert table.scan.call_args.kwargs["ExclusiveStartKey"] == {"id": Decimal(2)}
    assert "FilterExpression" in table.scan.call_args.kwargs


def test_select_expands_foreign_keys(ddb):
    ddb.tables["reserva"].scan.return_value = {"Items": [{"id": Decimal(1), "usuario_id": Decimal(4)}]}
    ddb.tables["usuario"].get_item.return_value = {
        "Item": {"id": Decimal(4), "nombres": "Ana Maria", "apellidos": "Quispe", "dni": "11112222"}}

    rows = ddb.select("reserva", expand={"usuario": ["nombres", "apellidos"]})

    assert rows[0]["usuario"] == {"nombres": "Ana Maria", "apellidos": "Quispe"}


def test_insert_takes_id_from_counter(ddb):
    ddb.counters.update_item.return_value = {"Attributes": {"next_id": Decimal(5)}}

    row = ddb.insert("mesa", {"numero": 1, "nombre": "Mesa 1"})

    assert row["id"] == 5
    kwargs = ddb.tables["mesa"].put_item.call_args.kwargs
    assert kwargs["Item"]["id"] == 5
    assert kwargs["ConditionExpression"] == "attribute_not_exists(id)"


def test_update_sets_patch_on_matching_rows(ddb):
    table = ddb.tables["asiento"]
    table.get_item.return_value = {"Item": {"id": Decimal(9), "ocupado": False}}
    table.update_item.return_value = {"Attributes": {"id": Decimal(9), "ocupado": True}}

    updated = ddb.update("asiento", {"id": 9}, {"ocupado": True})

    assert updated == [{"id": 9, "ocupado": True}]
    kwargs = table.update_item.call_args.kwargs
    assert kwargs["UpdateExpression"] == "SET #ocupado = :ocupado"
    assert kwargs["ExpressionAttributeValues"] == {":ocupado": True}


def test_client_errors_become_store_errors(ddb):
    ddb.tables["usuario"].scan.side_effect = _client_error("Scan")
    with pytest.raises(StoreError):
        ddb.select("usuario", {"codigo": "123456"})


def test_unknown_table(ddb):
    with pytest.raises(StoreError):
        ddb.select("mesas")


def test_connection(ddb):
    assert ddb.test_connection() is True
    ddb.client.list_tables.side_effect = _client_error("ListTables")
    assert ddb.test_connection() is False
