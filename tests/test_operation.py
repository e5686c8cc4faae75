from paxi.operation import Operation


def test_happen_before():
    a = Operation(key=1, input=7, start=0, end=5)
    b = Operation(key=1, output=7, start=6, end=9)
    assert a.happen_before(b)
    assert not b.happen_before(a)
    assert not a.concurrent(b)


def test_overlapping_operations_are_concurrent():
    a = Operation(start=0, end=10)
    b = Operation(start=5, end=15)
    assert a.concurrent(b)
    assert b.concurrent(a)


def test_touching_end_and_start_is_concurrent():
    a = Operation(start=0, end=5)
    b = Operation(start=5, end=8)
    assert not a.happen_before(b)
    assert a.concurrent(b)


def test_equal_ignores_key():
    a = Operation(key=1, input=3, start=2, end=4)
    b = Operation(key=2, input=3, start=2, end=4)
    c = Operation(key=1, input=3, start=2, end=5)
    assert a.equal(b)
    assert not a.equal(c)


def test_identity_semantics():
    a = Operation(key=1, input=3, start=2, end=4)
    b = Operation(key=1, input=3, start=2, end=4)
    assert a != b
    assert len({a, b}) == 2


def test_str_shows_fields():
    text = str(Operation(key=1, input=42, output=None, start=3, end=8))
    assert "input=42" in text
    assert "start=3" in text
    assert "end=8" in text


def test_sorting_by_start():
    ops = [Operation(start=s, end=s + 1) for s in (5, 1, 3)]
    ordered = sorted(ops, key=lambda o: o.start)
    assert [o.start for o in ordered] == [1, 3, 5]