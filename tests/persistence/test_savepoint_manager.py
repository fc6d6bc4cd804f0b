import logging

import pytest

from aurum.persistence import SavepointManager, SavepointState


def _names(connection):
    return [row["name"] for row in connection.fetch_all("SELECT name FROM item ORDER BY id")]


def test_ensure_outside_transaction_does_nothing(connection):
    savepoint = SavepointManager(connection, "sp_a")

    assert savepoint.ensure() is False
    assert savepoint.state is SavepointState.NONE
    assert connection.statements == []


def test_savepoint_is_created_once_per_cycle(connection):
    connection.begin_transaction()
    savepoint = SavepointManager(connection, "sp_a")

    assert savepoint.ensure() is True
    assert savepoint.ensure() is False

    assert connection.sql("SAVEPOINT") == ['SAVEPOINT "sp_a"']
    assert connection.savepoints == ("sp_a",)
    assert savepoint.active


def test_release_keeps_the_work(connection, schema):
    schema("CREATE TABLE item (id INTEGER PRIMARY KEY, name TEXT)")
    connection.begin_transaction()
    savepoint = SavepointManager(connection, "sp_a")
    savepoint.ensure()
    connection.execute("INSERT INTO item (name) VALUES (:name)", {"name": "kept"})

    savepoint.release()

    assert savepoint.state is SavepointState.RELEASED
    assert connection.savepoints == ()
    assert connection.sql("RELEASE") == ['RELEASE SAVEPOINT "sp_a"']
    assert _names(connection) == ["kept"]


def test_rollback_undoes_work_and_drops_the_savepoint(connection, schema):
    schema("CREATE TABLE item (id INTEGER PRIMARY KEY, name TEXT)")
    connection.begin_transaction()
    connection.execute("INSERT INTO item (name) VALUES (:name)", {"name": "before"})
    savepoint = SavepointManager(connection, "sp_a")
    savepoint.ensure()
    connection.execute("INSERT INTO item (name) VALUES (:name)", {"name": "after"})

    savepoint.rollback()

    assert savepoint.state is SavepointState.ROLLED_BACK
    assert connection.savepoints == ()
    assert connection.sql("ROLLBACK TO") == ['ROLLBACK TO SAVEPOINT "sp_a"']
    assert _names(connection) == ["before"]
    assert connection.in_transaction


def test_new_cycle_after_rollback(connection):
    connection.begin_transaction()
    savepoint = SavepointManager(connection, "sp_a")
    savepoint.ensure()
    savepoint.rollback()

    assert savepoint.ensure() is True
    assert savepoint.state is SavepointState.CREATED


def test_release_without_savepoint_is_a_no_op(connection):
    connection.begin_transaction()
    savepoint = SavepointManager(connection, "sp_a")

    savepoint.release()
    savepoint.rollback()

    assert savepoint.state is SavepointState.NONE
    assert connection.statements == []


def test_savepoint_lost_with_outer_transaction_is_logged(connection, caplog):
    connection.begin_transaction()
    savepoint = SavepointManager(connection, "sp_a")
    savepoint.ensure()
    connection.rollback()

    with caplog.at_level(logging.WARNING, logger="aurum.persistence.savepoint"):
        savepoint.release()

    assert savepoint.state is SavepointState.ROLLED_BACK
    assert "sp_a" in caplog.text


def test_releasing_an_outer_savepoint_discards_inner_ones(connection):
    connection.begin_transaction()
    outer = SavepointManager(connection, "sp_outer")
    inner = SavepointManager(connection, "sp_inner")
    outer.ensure()
    inner.ensure()

    outer.release()

    assert connection.savepoints == ()
    assert not inner.active


def test_reset_returns_to_initial_state(connection):
    connection.begin_transaction()
    savepoint = SavepointManager(connection, "sp_a")
    savepoint.ensure()
    connection.commit()

    savepoint.reset()

    assert savepoint.state is SavepointState.NONE
    assert repr(savepoint) == "<SavepointManager sp_a none>"


def test_each_flush_gets_its_own_nested_savepoint(connection):
    connection.begin_transaction()
    savepoint = SavepointManager(connection, "sp_a")

    first = savepoint.begin_flush()
    assert connection.savepoints == ("sp_a", "sp_a_f1")
    savepoint.end_flush(first)
    second = savepoint.begin_flush()

    assert second == "sp_a_f2"
    assert connection.savepoints == ("sp_a", "sp_a_f2")
    assert savepoint.state is SavepointState.CREATED


def test_aborted_flush_only_undoes_its_own_statements(connection, schema):
    schema("CREATE TABLE item (id INTEGER PRIMARY KEY, name TEXT)")
    connection.begin_transaction()
    mine = SavepointManager(connection, "sp_mine")
    sibling = SavepointManager(connection, "sp_sibling")
    mine.end_flush(mine.begin_flush())
    connection.execute("INSERT INTO item (name) VALUES (:name)", {"name": "mine"})
    sibling.end_flush(sibling.begin_flush())
    connection.execute("INSERT INTO item (name) VALUES (:name)", {"name": "sibling"})

    flush_name = mine.begin_flush()
    connection.execute("INSERT INTO item (name) VALUES (:name)", {"name": "failed"})
    mine.abort_flush(flush_name)

    assert _names(connection) == ["mine", "sibling"]
    assert connection.savepoints == ("sp_mine", "sp_sibling")
    assert mine.active and sibling.active


def test_flush_scope_outside_transaction_is_empty(connection):
    savepoint = SavepointManager(connection, "sp_a")

    assert savepoint.begin_flush() is None
    savepoint.abort_flush(None)
    savepoint.end_flush(None)
    assert connection.statements == []


def test_rename_refuses_an_open_savepoint(connection):
    savepoint = SavepointManager(connection, "sp_a")
    savepoint.rename("sp_b")
    assert savepoint.name == "sp_b"

    connection.begin_transaction()
    savepoint.ensure()
    with pytest.raises(ValueError):
        savepoint.rename("sp_c")
