# ======================================
# sql_store.py - SQLAlchemy storage (Flask-SQLAlchemy models, server-side joins)
# ======================================
import os
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from errors import StoreError
from models import db, MODELS
from store_common import SCHEMA, parse_order, project

# 設定日誌
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SQLStore:
    def __init__(self, app):
        self.VERSION = "1.0-sqlalchemy"
        app.config.setdefault(
            'SQLALCHEMY_DATABASE_URI',
            os.environ.get('DATABASE_URL', 'sqlite:///reservations.db')
        )
        db.init_app(app)
        with app.app_context():
            db.create_all()
        self.app = app

    def test_connection(self):
        try:
            db.session.execute(db.select(MODELS["mesa"].id).limit(1))
            return True
        except SQLAlchemyError as e:
            logger.error(f"SQL connection failed: {e}")
            db.session.rollback()
            return False

    # ========== generic operations ==========
    def select(self, table, filters=None, order=None, limit=None, expand=None):
        model = self._model(table)
        try:
            query = db.select(model).filter_by(**self._coerce(model, filters or {}))
            for name in (expand or {}):
                query = query.options(joinedload(getattr(model, name)))
            for column, descending in parse_order(order):
                col = getattr(model, column)
                query = query.order_by(col.desc() if descending else col.asc())
            if limit is not None:
                query = query.limit(int(limit))
            objects = db.session.execute(query).unique().scalars().all()
        except (SQLAlchemyError, AttributeError) as e:
            logger.error(f"select {table} failed: {e}")
            db.session.rollback()
            raise StoreError(f"select {table} failed") from e

        rows = []
        for obj in objects:
            row = self._to_dict(table, obj)
            for name, columns in (expand or {}).items():
                related = getattr(obj, name)
                row[name] = project(self._to_dict(name, related), columns) if related is not None else None
            rows.append(row)
        return rows

    def insert(self, table, row):
        model = self._model(table)
        try:
            obj = model(**self._coerce(model, row))
            db.session.add(obj)
            db.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"insert into {table} failed: {e}")
            db.session.rollback()
            raise StoreError(f"insert into {table} failed") from e

        logger.info(f"Inserted into {table}: id={obj.id}")
        return self._to_dict(table, obj)

    def update(self, table, filters, patch):
        model = self._model(table)
        values = self._coerce(model, {k: v for k, v in patch.items() if k != 'id'})
        try:
            objects = db.session.execute(
                db.select(model).filter_by(**self._coerce(model, filters))
            ).scalars().all()
            for obj in objects:
                for key, value in values.items():
                    setattr(obj, key, value)
            db.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"update {table} failed: {e}")
            db.session.rollback()
            raise StoreError(f"update {table} failed") from e

        logger.info(f"Updated {len(objects)} row(s) in {table}")
        return [self._to_dict(table, obj) for obj in objects]

    # ========== helpers ==========
    def _model(self, table):
        if table not in MODELS:
            raise StoreError(f"Unknown table: {table}")
        return MODELS[table]

    def _coerce(self, model, data):
        """Form values come in as text; convert to the column's Python type."""
        columns = model.__table__.columns
        result = {}
        for key, value in data.items():
            if key not in columns:
                raise StoreError(f"Unknown column {model.__tablename__}.{key}")
            python_type = columns[key].type.python_type
            if value is None or isinstance(value, python_type):
                result[key] = value
            elif python_type is int:
                try:
                    result[key] = int(value)
                except (TypeError, ValueError) as e:
                    raise StoreError(f"Invalid value for {key}: {value!r}") from e
            elif python_type is bool:
                result[key] = str(value).lower() in ('1', 'true', 'yes')
            else:
                result[key] = python_type(value)
        return result

    def _to_dict(self, table, obj):
        return {column: getattr(obj, column) for column in SCHEMA[table]}
