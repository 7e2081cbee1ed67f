from utils.schema import Column, Reference, schema_to_dict
from utils.schema_format import decode, encode, split_top_level


def test_decode_table_line():
    """Key tags, types and references are read from the attribute list"""
    schema = decode("shop.orders: id(INT,PK), customer_id(INT,FK,REF=shop.customers.id), note")

    columns = schema["shop"]["orders"]
    assert [c.name for c in columns] == ["id", "customer_id", "note"]
    assert columns[0].key == "PRI"
    assert columns[0].type == "INT"
    assert columns[1].key == "MUL"
    assert columns[1].references == [Reference(database="shop", table="customers", column="id")]
    assert columns[1].references[0].type == "MANY_TO_ONE"
    assert columns[2].to_dict() == {"Field": "note"}


def test_decode_keeps_nested_parentheses_in_type():
    schema = decode("shop.items: price(DECIMAL(10,2),FK), qty(INT)")

    price, qty = schema["shop"]["items"]
    assert price.type == "DECIMAL(10,2)"
    assert price.key == "MUL"
    assert qty.type == "INT"


def test_decode_skips_comments_blank_and_bad_lines():
    text = """
# exported schema
shop.a: x

not a table line
// another comment
shop.b: y(INT) # trailing comment
crm.users: id(INT,PRIMARY)
"""
    schema = decode(text)

    assert list(schema) == ["shop", "crm"]
    assert list(schema["shop"]) == ["a", "b"]
    assert schema["shop"]["b"][0].type == "INT"
    assert schema["crm"]["users"][0].key == "PRI"


def test_malformed_attribute_group_keeps_bare_column():
    schema = decode("shop.t: a(INT)x, b(TEXT,PK)")

    a, b = schema["shop"]["t"]
    assert a.to_dict() == {"Field": "a"}
    assert b.type == "TEXT"
    assert b.key == "PRI"


def test_last_type_attribute_wins():
    schema = decode("shop.t: a(INT,BIGINT)")
    assert schema["shop"]["t"][0].type == "BIGINT"


def test_reference_type_suffix_and_upsert():
    schema = decode("shop.t: a(REF=shop.u.id,REF=shop.u.id:ONE_TO_ONE,REF=shop.v.id)")

    refs = schema["shop"]["t"][0].references
    assert [(r.table, r.type) for r in refs] == [("u", "ONE_TO_ONE"), ("v", "MANY_TO_ONE")]


def test_malformed_reference_is_skipped():
    schema = decode("shop.t: a(INT,REF=shop.u,note=hello)")

    column = schema["shop"]["t"][0]
    assert column.type == "INT"
    assert column.references is None


def test_repeated_table_line_replaces_definition():
    schema = decode("shop.t: a\nshop.t: b, c")
    assert [c.name for c in schema["shop"]["t"]] == ["b", "c"]


def test_encode_format():
    schema = {
        "shop": {
            "orders": [
                Column(name="id", type="INT", key="PRI"),
                Column(
                    name="customer_id",
                    type="INT",
                    key="MUL",
                    references=[Reference(database="crm", table="users", column="id")],
                ),
            ],
        },
        "crm": {"users": [Column(name="email", key="UNI")]},
    }

    assert encode(schema) == (
        "shop.orders: id(INT,PK), customer_id(INT,FK,REF=crm.users.id)\n"
        "\n"
        "crm.users: email(UNI)\n"
    )


def test_encode_then_decode_preserves_keys_types_and_references():
    schema = {
        "shop": {
            "orders": [
                Column(name="id", type="int(11)", key="PRI"),
                Column(
                    name="customer_id",
                    type="int",
                    key="MUL",
                    references=[
                        Reference(database="shop", table="customers", column="id"),
                        Reference(database="crm", table="people", column="id", type="ONE_TO_ONE"),
                    ],
                ),
                Column(name="total", type="decimal(10,2)"),
                Column(name="code", key="UNI"),
                Column(name="note"),
            ],
            "customers": [Column(name="id", type="int", key="PRI")],
        },
        "crm": {"people": [Column(name="id")]},
    }

    assert schema_to_dict(decode(encode(schema))) == schema_to_dict(schema)


def test_split_top_level():
    assert split_top_level("a(INT,PK), b(DECIMAL(10,2)),c") == ["a(INT,PK)", "b(DECIMAL(10,2))", "c"]


def test_type_with_equals_sign_is_kept():
    schema = {"shop": {"t": [Column(name="flag", type="enum('a=b','c')", key="MUL")]}}

    decoded = decode(encode(schema))

    assert decoded["shop"]["t"][0].type == "enum('a=b','c')"
    assert decoded["shop"]["t"][0].key == "MUL"


def test_empty_database_is_written_as_comment():
    schema = {"shop": {"t": [Column(name="id")]}, "crm": {}}

    text = encode(schema)

    assert text == "shop.t: id\n\n# database: crm (no tables)\n"
    assert list(decode(text)) == ["shop"]
