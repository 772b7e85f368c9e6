# ======================================
# ddb_store.py - DynamoDB 儲存層 (usuario / mesa / asiento / reserva)
# ======================================
import boto3
import os
from botocore.exceptions import ClientError
from boto3.dynamodb.conditions import Attr
import logging
from decimal import Decimal

from errors import StoreError
from store_common import SCHEMA, apply_query, expand_rows

# 設定日誌
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class DynamoDBStore:
    def __init__(self):
        self.VERSION = "2.0-generic-tables"

        # 表名配置
        self.table_names = {
            "usuario": os.environ.get('USERS_TABLE', 'usuario'),
            "mesa": os.environ.get('TABLES_TABLE', 'mesa'),
            "asiento": os.environ.get('SEATS_TABLE', 'asiento'),
            "reserva": os.environ.get('RESERVATIONS_TABLE', 'reserva'),
        }
        self.counters_table = os.environ.get('COUNTERS_TABLE', 'seat-counters')

        # DynamoDB客户端
        self.dynamodb = boto3.resource('dynamodb')
        self.client = boto3.client('dynamodb')

        # 表引用
        self.tables = {name: self.dynamodb.Table(real) for name, real in self.table_names.items()}
        self.counters = self.dynamodb.Table(self.counters_table)

        self._ensure_tables_exist()

    def _ensure_tables_exist(self):
        """Create any missing entity table plus the id counter table."""
        try:
            for real_name in self.table_names.values():
                self._create_table(real_name, 'id', 'N')
            self._create_table(self.counters_table, 'name', 'S')
        except ClientError as e:
            logger.error(f"Failed to create DynamoDB tables: {e}")

    def _create_table(self, table_name, key, key_type):
        try:
            self.client.describe_table(TableName=table_name)
            logger.info(f"Table {table_name} already exists")
        except ClientError as e:
            if e.response['Error']['Code'] != 'ResourceNotFoundException':
                raise
            logger.info(f"Creating table: {table_name}")
            self.client.create_table(
                TableName=table_name,
                KeySchema=[{'AttributeName': key, 'KeyType': 'HASH'}],
                AttributeDefinitions=[{'AttributeName': key, 'AttributeType': key_type}],
                BillingMode='PAY_PER_REQUEST'
            )
            waiter = self.client.get_waiter('table_exists')
            waiter.wait(TableName=table_name)
            logger.info(f"Table {table_name} created")

    def test_connection(self):
        try:
            self.client.list_tables()
            logger.info("DynamoDB connection OK")
            return True
        except ClientError as e:
            logger.error(f"DynamoDB connection failed: {e}")
            return False

    # ========== 通用操作 ==========
    def select(self, table, filters=None, order=None, limit=None, expand=None):
        """Scan + filter in memory; `id` lookups use get_item."""
        ref = self._table(table)
        try:
            if filters and set(filters) == {'id'}:
                response = ref.get_item(Key={'id': self._key(filters['id'])})
                items = [response['Item']] if 'Item' in response else []
            else:
                items = self._scan(ref, filters)
        except ClientError as e:
            logger.error(f"select {table} failed: {e}")
            raise StoreError(f"select {table} failed") from e

        rows = [self._convert_from_dynamodb_format(item) for item in items]
        rows = apply_query(rows, filters, order, limit)
        return expand_rows(self, rows, expand)

    def insert(self, table, row):
        ref = self._table(table)
        try:
            item = dict(row)
            if item.get('id') is None:
                item['id'] = self._next_id(table)
            ref.put_item(
                Item=self._convert_to_dynamodb_format(item),
                ConditionExpression='attribute_not_exists(id)'
            )
            logger.info(f"Inserted into {table}: id={item['id']}")
            return item
        except ClientError as e:
            logger.error(f"insert into {table} failed: {e}")
            raise StoreError(f"insert into {table} failed") from e

    def update(self, table, filters, patch):
        """Apply `patch` to every row matching `filters`; returns the updated rows."""
        ref = self._table(table)
        targets = self.select(table, filters)
        if not patch:
            return targets

        fields = [k for k in patch if k != 'id']
        update_expression = "SET " + ", ".join(f"#{k} = :{k}" for k in fields)
        expression_names = {f"#{k}": k for k in fields}
        expression_values = {f":{k}": self._convert_value_to_dynamodb(patch[k]) for k in fields}

        updated = []
        try:
            for row in targets:
                response = ref.update_item(
                    Key={'id': self._key(row['id'])},
                    UpdateExpression=update_expression,
                    ExpressionAttributeNames=expression_names,
                    ExpressionAttributeValues=expression_values,
                    ReturnValues='ALL_NEW'
                )
                updated.append(self._convert_from_dynamodb_format(response.get('Attributes', {})))
        except ClientError as e:
            logger.error(f"update {table} failed: {e}")
            raise StoreError(f"update {table} failed") from e

        logger.info(f"Updated {len(updated)} row(s) in {table}")
        return updated

    # ========== 工具方法 ==========
    def _table(self, table):
        if table not in SCHEMA:
            raise StoreError(f"Unknown table: {table}")
        return self.tables[table]

    def _scan(self, ref, filters):
        scan_kwargs = {}
        if filters:
            condition = None
            for column, value in filters.items():
                clause = Attr(column).eq(self._filter_value(column, value))
                condition = clause if condition is None else condition & clause
            scan_kwargs['FilterExpression'] = condition

        items = []
        while True:
            response = ref.scan(**scan_kwargs)
            items.extend(response.get('Items', []))
            if 'LastEvaluatedKey' not in response:
                break
            scan_kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        return items

    def _next_id(self, table):
        """Atomic counter per entity (ADD on the counters table)."""
        response = self.counters.update_item(
            Key={'name': table},
            UpdateExpression='ADD next_id :one',
            ExpressionAttributeValues={':one': 1},
            ReturnValues='UPDATED_NEW'
        )
        return int(response['Attributes']['next_id'])

    def _key(self, value):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise StoreError(f"Invalid id: {value!r}")

    def _filter_value(self, column, value):
        # ids arrive as text from HTML forms
        if column == 'id' or column.endswith('_id'):
            return self._key(value)
        return self._convert_value_to_dynamodb(value)

    def _convert_to_dynamodb_format(self, data):
        if isinstance(data, dict):
            return {k: self._convert_value_to_dynamodb(v) for k, v in data.items()}
        return data

    def _convert_from_dynamodb_format(self, data):
        if isinstance(data, dict):
            return {k: self._convert_value_from_dynamodb(v) for k, v in data.items()}
        return data

    def _convert_value_to_dynamodb(self, value):
        if isinstance(value, float):
            return Decimal(str(value))
        return value

    def _convert_value_from_dynamodb(self, value):
        if isinstance(value, Decimal):
            return float(value) if value % 1 else int(value)
        return value
