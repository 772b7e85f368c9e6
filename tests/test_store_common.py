from store_common import parse_order, matches, apply_query, expand_rows, project


def test_parse_order():
    assert parse_order("mesa_id,posicion") == [("mesa_id", False), ("posicion", False)]
    assert parse_order("-created_at") == [("created_at", True)]
    assert parse_order(None) == []


def test_matches_compares_ids_as_text():
    assert matches({"id": 5}, {"id": "5"})
    assert matches({"codigo": "000123"}, {"codigo": "000123"})
    assert not matches({"id": 5}, {"id": 6})


def test_apply_query_multi_key_order_and_limit():
    rows = [
        {"id": 1, "mesa_id": 2, "posicion": 1},
        {"id": 2, "mesa_id": 1, "posicion": 1},
        {"id": 3, "mesa_id": 1, "posicion": 0},
        {"id": 4, "mesa_id": 2, "posicion": 0},
    ]
    result = apply_query(rows, order="mesa_id,posicion")
    assert [r["id"] for r in result] == [3, 2, 4, 1]
    assert [r["id"] for r in apply_query(rows, {"mesa_id": 2}, limit=1)] == [1]


def test_apply_query_descending():
    rows = [{"created_at": "2026-10-01T10:00"}, {"created_at": "2026-10-19T14:30"}]
    assert apply_query(rows, order="-created_at", limit=1)[0]["created_at"] == "2026-10-19T14:30"


def test_apply_query_returns_copies():
    rows = [{"id": 1}]
    apply_query(rows)[0]["id"] = 99
    assert rows[0]["id"] == 1


def test_project():
    assert project({"a": 1, "b": 2}, ["a"]) == {"a": 1}


class FakeStore:
    def __init__(self, rows):
        self.rows = rows
        self.calls = 0

    def select(self, table, filters=None, order=None, limit=None, expand=None):
        self.calls += 1
        return apply_query(self.rows[table], filters, order, limit)


def test_expand_rows_resolves_foreign_keys_once():
    store = FakeStore({"usuario": [{"id": 1, "nombres": "Ana", "apellidos": "Quispe", "dni": "1"}]})
    rows = [{"id": 10, "usuario_id": 1}, {"id": 11, "usuario_id": 1}, {"id": 12, "usuario_id": None}]

    expand_rows(store, rows, {"usuario": ["nombres", "apellidos"]})

    assert rows[0]["usuario"] == {"nombres": "Ana", "apellidos": "Quispe"}
    assert rows[1]["usuario"] == rows[0]["usuario"]
    assert rows[2]["usuario"] is None
    assert store.calls == 1
