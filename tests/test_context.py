from utils.context import (
    context_size,
    extract_keywords,
    identify_relevant_tables,
    limit_schema_context,
    minimal_schema,
)
from utils.schema import Column, Reference, schema_from_dict


def test_extract_keywords_drops_short_and_stop_words():
    assert extract_keywords("How many Orders were placed last week") == ["orders", "placed", "last", "week"]


def test_table_name_match(shop_schema):
    reduced = identify_relevant_tables("how many orders are there", shop_schema)

    assert list(reduced) == ["shop"]
    assert list(reduced["shop"]) == ["orders"]


def test_column_name_match(shop_schema):
    reduced = identify_relevant_tables("list every email address", shop_schema)
    assert list(reduced["shop"]) == ["customers"]


def test_database_name_match_includes_all_tables():
    schema = schema_from_dict({
        "inventory": {"items": [{"Field": "id"}], "stock": [{"Field": "qty"}]},
        "shop": {"orders": [{"Field": "id"}]},
    })

    reduced = identify_relevant_tables("current inventory levels", schema)
    assert reduced == {"inventory": schema["inventory"]}


def test_substring_matching_over_matches():
    schema = schema_from_dict({
        "app": {"users_archive": [{"Field": "id"}], "sessions": [{"Field": "id"}]},
    })

    reduced = identify_relevant_tables("find user accounts", schema)
    assert list(reduced["app"]) == ["users_archive"]


def test_no_overlap_returns_sample():
    tables = {f"t{i}": [{"Field": "id"}] for i in range(5)}
    schema = schema_from_dict({"a": tables, "b": {"only": [{"Field": "id"}]}})

    reduced = identify_relevant_tables("zzzz", schema)

    assert list(reduced["a"]) == ["t0", "t1", "t2"]
    assert list(reduced["b"]) == ["only"]


def test_selected_database_narrows_context(shop_schema):
    shop_schema["other"] = {"t": [Column(name="id")]}
    assert list(limit_schema_context(shop_schema, "shop")) == ["shop"]


def test_small_context_is_unchanged(shop_schema):
    assert limit_schema_context(shop_schema, max_chars=100000) == shop_schema


def test_large_databases_lose_types_but_keep_references():
    ref = Reference(database="big", table="t0", column="id")
    big = {
        f"t{i}": [
            Column(name="id", type="bigint(20) unsigned", key="PRI"),
            Column(name="parent_id", type="bigint(20) unsigned", key="MUL", references=[ref]),
        ]
        for i in range(20)
    }
    small = {"s": [Column(name="id", type="int", key="PRI")]}
    schema = {"big": big, "small": small}

    limited = limit_schema_context(schema, max_chars=200, large_database_tables=15)

    parent = limited["big"]["t3"][1]
    assert parent.type is None
    assert parent.key == "MUL"
    assert parent.references == [ref]
    assert limited["small"]["s"][0].type == "int"
    # input is left alone
    assert schema["big"]["t3"][1].type == "bigint(20) unsigned"
    assert context_size(limited) < context_size(schema)


def test_minimal_schema(shop_schema):
    shop_schema["shop"]["log"] = [Column(name="message")]

    assert minimal_schema(shop_schema) == {
        "shop": {
            "orders": "Primary keys: id",
            "customers": "Primary keys: id",
            "log": "No primary keys",
        }
    }
