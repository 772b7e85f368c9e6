# ======================================
# s3_store.py - S3 JSON storage (one object per row, 5s read cache)
# ======================================
import boto3
import json
import os
from botocore.exceptions import ClientError
import logging
import threading
import time

from errors import StoreError
from store_common import SCHEMA, apply_query, expand_rows

# 設定日誌
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class S3Store:
    def __init__(self):
        self.VERSION = "5.0-generic-rows"
        self.bucket_name = os.environ.get('S3_BUCKET_NAME', 'seat-reservation-data')
        self.s3_client = boto3.client('s3')

        # per-table memory cache (5 seconds): table -> (expiry, rows)
        self.rows_cache = {}
        self.rows_lock = threading.Lock()
        self.CACHE_TTL_SECONDS = 5

    # -------------- cache --------------
    def _clear_cache(self, table):
        logger.info(f"Clearing '{table}' cache")
        with self.rows_lock:
            self.rows_cache.pop(table, None)

    def _cached_rows(self, table, now):
        # one read of the entry; a concurrent clear can only make it a miss
        entry = self.rows_cache.get(table)
        if entry is None or entry[0] <= now:
            return None
        return entry[1]

    def _key(self, table, row_id):
        return f"{table}/{row_id}.json"

    # -------------- load all rows of a table --------------
    def _load_rows(self, table):
        """
        Read every object under `<table>/`. Expensive (list + one GET per row),
        so results are cached for CACHE_TTL_SECONDS behind a lock.
        """
        now = time.monotonic()
        cached = self._cached_rows(table, now)
        if cached is not None:
            return cached

        with self.rows_lock:
            cached = self._cached_rows(table, now)
            if cached is not None:
                return cached

            rows = []
            try:
                paginator = self.s3_client.get_paginator('list_objects_v2')
                for page in paginator.paginate(Bucket=self.bucket_name, Prefix=f'{table}/'):
                    for obj in page.get('Contents', []):
                        key = obj['Key']
                        if not key.endswith('.json'):
                            continue
                        resp = self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
                        rows.append(json.loads(resp['Body'].read().decode('utf-8')))
            except ClientError as e:
                logger.error(f"Loading {table} from S3 failed: {e}")
                raise StoreError(f"select {table} failed") from e

            self.rows_cache[table] = (now + self.CACHE_TTL_SECONDS, rows)
            logger.info(f"Loaded {len(rows)} row(s) of {table} from S3")
            return rows

    def _put_row(self, table, row):
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=self._key(table, row['id']),
            Body=json.dumps(row, ensure_ascii=False, indent=2),
            ContentType='application/json'
        )

    # -------------- generic operations --------------
    def select(self, table, filters=None, order=None, limit=None, expand=None):
        self._check_table(table)
        rows = apply_query(self._load_rows(table), filters, order, limit)
        return expand_rows(self, rows, expand)

    def insert(self, table, row):
        self._check_table(table)
        item = dict(row)
        try:
            if item.get('id') is None:
                # best effort: max(id) + 1, no cross-process lock
                existing = self._load_rows(table)
                item['id'] = max((int(r.get('id', 0)) for r in existing), default=0) + 1
            self._put_row(table, item)
        except ClientError as e:
            logger.error(f"insert into {table} failed: {e}")
            raise StoreError(f"insert into {table} failed") from e
        finally:
            self._clear_cache(table)

        logger.info(f"Inserted into {table}: id={item['id']}")
        return item

    def update(self, table, filters, patch):
        self._check_table(table)
        targets = self.select(table, filters)
        updated = []
        try:
            for row in targets:
                row.update({k: v for k, v in patch.items() if k != 'id'})
                self._put_row(table, row)
                updated.append(row)
        except ClientError as e:
            logger.error(f"update {table} failed: {e}")
            raise StoreError(f"update {table} failed") from e
        finally:
            self._clear_cache(table)

        logger.info(f"Updated {len(updated)} row(s) in {table}")
        return updated

    def test_connection(self):
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            logger.info(f"S3 connection OK: {self.bucket_name}")
            return True
        except ClientError as e:
            logger.error(f"S3 connection failed: {e}")
            return False

    def _check_table(self, table):
        if table not in SCHEMA:
            raise StoreError(f"Unknown table: {table}")
