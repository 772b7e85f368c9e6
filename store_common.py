# ======================================
# store_common.py - 各儲存後端共用的查詢工具
# ======================================
import logging

# 設定日誌
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# 實體 -> 欄位
SCHEMA = {
    "usuario": ["id", "codigo", "nombres", "apellidos", "dni", "telefono", "correo",
                "reservado", "fecha_reserva"],
    "mesa": ["id", "numero", "nombre", "capacidad"],
    "asiento": ["id", "numero", "mesa_id", "posicion", "ocupado"],
    "reserva": ["id", "usuario_id", "mesa_id", "asiento_id", "estado", "created_at"],
}


def parse_order(order):
    """
    "mesa_id,posicion" -> [("mesa_id", False), ("posicion", False)]
    "-created_at"      -> [("created_at", True)]
    """
    if not order:
        return []
    if isinstance(order, str):
        order = order.split(",")
    keys = []
    for part in order:
        part = part.strip()
        if not part:
            continue
        if part.startswith("-"):
            keys.append((part[1:], True))
        else:
            keys.append((part, False))
    return keys


def matches(row, filters):
    if not filters:
        return True
    for column, expected in filters.items():
        if _normalize(row.get(column)) != _normalize(expected):
            return False
    return True


def _normalize(value):
    # 表單傳進來的 id 是字串，資料庫裡是數字
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float)):
        return str(int(value)) if float(value).is_integer() else str(value)
    return str(value)


def apply_query(rows, filters=None, order=None, limit=None):
    """在記憶體中套用 filter / order / limit (DynamoDB scan 與 S3 使用)"""
    result = [dict(r) for r in rows if matches(r, filters)]

    # 多鍵排序：從最後一個鍵開始做穩定排序
    for column, descending in reversed(parse_order(order)):
        result.sort(key=lambda r: _sort_key(r.get(column)), reverse=descending)

    if limit is not None:
        result = result[:int(limit)]
    return result


def _sort_key(value):
    # None 永遠排在最後 (升冪時)
    if value is None:
        return (1, "")
    if isinstance(value, (int, float)):
        return (0, value)
    return (0, str(value))


def project(row, columns):
    if not columns:
        return dict(row)
    return {c: row.get(c) for c in columns}


def expand_rows(store, rows, expand):
    """
    以個別查詢解析外鍵關聯：expand={"usuario": ["nombres", "apellidos"]}
    會讀取 row["usuario_id"] 對應的列並放在 row["usuario"]。
    任何一次查詢失敗都會直接拋出 StoreError。
    """
    if not expand:
        return rows

    for name, columns in expand.items():
        fk = f"{name}_id"
        cache = {}
        for row in rows:
            ref = row.get(fk)
            if ref is None:
                row[name] = None
                continue
            key = _normalize(ref)
            if key not in cache:
                found = store.select(name, {"id": ref}, limit=1)
                cache[key] = project(found[0], columns) if found else None
            row[name] = cache[key]
    return rows
