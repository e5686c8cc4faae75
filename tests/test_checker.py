from paxi.checker import Checker
from paxi.operation import Operation


def write(value, start, end):
    return Operation(key=1, input=value, start=start, end=end)


def read(value, start, end):
    return Operation(key=1, output=value, start=start, end=end)


def test_empty_history_has_no_anomaly():
    assert Checker().linearizable([]) == []


def test_read_after_write_is_linearizable():
    history = [write(1, 0, 10), read(1, 20, 30)]
    assert Checker().linearizable(history) == []


def test_stale_read_is_reported():
    r = read(1, 40, 50)
    history = [write(1, 0, 10), write(2, 20, 30), r]
    assert Checker().linearizable(history) == [r]


def test_history_order_does_not_matter():
    r = read(1, 40, 50)
    history = [r, write(2, 20, 30), write(1, 0, 10)]
    assert Checker().linearizable(history) == [r]


def test_concurrent_write_found_by_lookahead():
    r = read(5, 0, 30)
    w = write(5, 10, 20)
    checker = Checker()
    assert checker.linearizable([r, w]) == []
    assert r not in checker.graph
    assert w in checker.graph


def test_add_links_earlier_operations():
    w1 = write(1, 0, 10)
    w2 = write(2, 20, 30)
    checker = Checker()
    checker.add(w1)
    checker.add(w2)
    assert w1 in checker.graph.predecessors(w2)
    assert w2 not in checker.graph.predecessors(w1)


def test_add_ignores_operation_already_present():
    w = write(1, 0, 10)
    checker = Checker()
    checker.add(w)
    checker.add(w)
    assert len(checker.graph) == 1


def test_match_finds_write_with_read_value():
    w = write(3, 0, 10)
    r = read(3, 20, 30)
    checker = Checker()
    checker.add(write(4, 0, 5))
    checker.add(w)
    checker.add(r)
    assert checker.match(r) is w


def test_match_without_candidate():
    checker = Checker()
    checker.add(write(4, 0, 5))
    r = read(9, 10, 20)
    checker.add(r)
    assert checker.match(r) is None


def test_merge_moves_edges_and_refines_end():
    w0 = write(0, 0, 5)
    w = write(1, 10, 100)
    r = read(1, 20, 30)
    checker = Checker()
    for op in (w0, w, r):
        checker.add(op)
    checker.merge(r, w)
    assert r not in checker.graph
    assert w.end == r.end
    assert w0 in checker.graph.predecessors(w)


def test_remove_and_clear():
    w1 = write(1, 0, 10)
    w2 = write(2, 20, 30)
    checker = Checker()
    checker.add(w1)
    checker.add(w2)
    checker.remove(w1)
    assert w1 not in checker.graph
    assert w1 not in checker.graph.predecessors(w2)
    checker.clear()
    assert w2 not in checker.graph