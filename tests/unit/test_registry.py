import gc

import pytest

from database.errors import ContractViolation, UnknownHandleError
from database.factory import connect
from database.registry import default_registry


def test_connect_binds_nickname(recording_adapter, registry):
    first = connect("app", "u", "p", adapter="recording", nickname="primary", registry=registry)
    assert registry.find("primary") is first
    assert first.registry is registry
    assert default_registry.get("primary") is not first


def test_connect_rebinds_existing_nickname(recording_adapter, registry):
    first = connect("app", "u", "p", adapter="recording", nickname="primary", registry=registry)
    second = connect("app", "u", "p", adapter="recording", nickname="primary", registry=registry)
    assert registry.find("primary") is second
    assert first is not second
    assert first.closed is False


def test_displaced_connection_shuts_down_once_released(recording_adapter, registry):
    calls = []
    first = connect("app", "u", "p", adapter="recording", nickname="primary", registry=registry)
    first.register_shutdown_handler(calls.append, ["first-cleanup"])
    connect("app", "u", "p", adapter="recording", nickname="primary", registry=registry)
    assert calls == []

    del first
    gc.collect()
    assert calls == ["first-cleanup"]


def test_released_connection_after_shutdown_does_not_rerun_handlers(db):
    handle = type(db)("other", "u", "p")
    calls = []
    handle.register_shutdown_handler(calls.append, ["once"])
    handle.shutdown()
    del handle
    gc.collect()
    assert calls == ["once"]


def test_connect_default_nickname_is_empty_string(recording_adapter, registry):
    handle = connect("app", "u", "p", adapter="recording", registry=registry)
    assert registry.find() is handle


def test_connect_without_nickname_skips_registry(recording_adapter, registry):
    connect("app", "u", "p", adapter="recording", nickname=None, registry=registry)
    assert len(registry) == 0


def test_connect_pconnect_resets_stale_session(recording_adapter, registry):
    handle = connect("app", "u", "p", adapter="recording", options={"pconnect": True}, registry=registry)
    assert handle.executed == ["ROLLBACK"]
    assert handle.in_transaction is False


def test_connect_logs_relaxed_connection_error(recording_adapter, registry, caplog):
    handle = connect(
        "app", "u", "p", adapter="recording", options={"fail_connect": True, "fatal_errors": False}, registry=registry
    )
    assert handle.dbh is None
    assert handle.error_state.errno == 1045
    assert "DB Error" in caplog.text


def test_find_unknown_nickname_raises(registry):
    with pytest.raises(UnknownHandleError, match="ghost"):
        registry.find("ghost")
    with pytest.raises(LookupError):
        registry.find("ghost")


def test_register_global_name_requires_current_binding(db, registry):
    assert db.register_global_name("main") is False
    registry.bind("main", db)
    assert db.register_global_name("main") is True
    assert db.global_name == "main"


def test_shutdown_handlers_run_once_in_order(db):
    calls = []
    db.register_shutdown_handler(calls.append, ["first"])
    db.register_shutdown_handler(lambda: calls.append("second"))
    db.register_shutdown_handler(calls.append, ("third",))
    db.shutdown()
    db.shutdown()
    assert calls == ["first", "second", "third"]
    assert db.disconnects == 1
    assert db.closed is True


def test_non_sequence_params_mean_no_arguments(db):
    calls = []
    db.register_shutdown_handler(lambda: calls.append("ran"), "ignored")
    db.prepare_shutdown()
    assert calls == ["ran"]


def test_register_after_shutdown_is_rejected(db):
    db.prepare_shutdown()
    with pytest.raises(ContractViolation):
        db.register_shutdown_handler(print)


def test_shutdown_resurrects_into_empty_slot_before_handlers(db, registry):
    registry.bind("session_db", db)
    db.register_global_name("session_db")
    registry.unbind("session_db")

    seen = []
    db.register_shutdown_handler(lambda: seen.append(registry.find("session_db")))
    db.shutdown()

    assert seen == [db]
    assert "session_db" not in registry


def test_shutdown_leaves_occupied_slot_alone(db, registry):
    other = type(db)("other", "u", "p")
    registry.bind("session_db", db)
    db.register_global_name("session_db")
    registry.bind("session_db", other)

    seen = []
    db.register_shutdown_handler(lambda: seen.append(registry.find("session_db")))
    db.prepare_shutdown()

    assert seen == [other]
    assert registry.find("session_db") is other


def test_context_manager_shuts_down(db):
    calls = []
    with db as handle:
        handle.register_shutdown_handler(calls.append, [1])
    assert calls == [1]
    assert db.closed is True


def test_shutdown_all_handles_each_connection_once(db, registry):
    other = type(db)("other", "u", "p")
    calls = []
    db.register_shutdown_handler(calls.append, ["db"])
    other.register_shutdown_handler(calls.append, ["other"])
    registry.bind("primary", db)
    registry.bind("alias", db)
    registry.bind("secondary", other)

    registry.shutdown_all()

    assert calls == ["db", "other"]
    assert len(registry) == 0
    assert db.closed and other.closed
