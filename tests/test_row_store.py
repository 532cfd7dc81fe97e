from sqliteplus import RowStore, NULL_TEXT
from sqliteplus.row_store import to_text


def test_append_and_clear():
    store = RowStore()
    store.append(["a", "b"])
    store.append(("c", "d"))
    store.columns = ("x", "y")
    assert len(store) == 2
    assert store[0] == ("a", "b")
    assert list(store) == [("a", "b"), ("c", "d")]
    store.clear()
    assert len(store) == 0
    assert store.columns == ()


def test_rows_are_immutable_tuples():
    store = RowStore()
    fields = ["a"]
    store.append(fields)
    fields.append("b")
    assert store[0] == ("a",)


def test_format():
    store = RowStore()
    assert store.format() == ""
    store.append(["1", NULL_TEXT])
    assert store.format() == "|1|NULL|\n"


def test_to_text():
    assert to_text(None) == "NULL"
    assert to_text(3) == "3"
    assert to_text("x") == "x"
    assert to_text(b"hi") == "hi"
    assert to_text(0.1) == "0.1"
    assert to_text(2.0) == "2.0"
    assert to_text(1e20) == "1.0e+20"
    assert to_text(1 / 3) == "0.333333333333333"
    assert to_text(float("inf")) == "Inf"
    assert to_text(float("-inf")) == "-Inf"
