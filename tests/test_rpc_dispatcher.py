import asyncio

import pytest

from cortexrpc.rpc.dispatcher import RequestDispatcher
from cortexrpc.utils.exceptions import (
    ConnectionClosedError,
    MalformedResponseError,
    RpcError,
    UnknownCorrelationWarning,
)


@pytest.mark.asyncio
async def test_call_sends_envelope_with_increasing_ids(fake_connection):
    dispatcher = RequestDispatcher(fake_connection)
    dispatcher.call("queryHeadsets", {"id": "EPOC-1"})
    dispatcher.call("getUserLogin")

    assert fake_connection.sent == [
        {"protocolVersion": "2.0", "method": "queryHeadsets", "params": {"id": "EPOC-1"}, "id": 0},
        {"protocolVersion": "2.0", "method": "getUserLogin", "params": {}, "id": 1},
    ]
    assert dispatcher.pending_ids == [0, 1]


@pytest.mark.asyncio
async def test_responses_out_of_order_resolve_their_own_callers(fake_connection):
    dispatcher = RequestDispatcher(fake_connection)
    first = dispatcher.call("a")
    second = dispatcher.call("b")

    assert dispatcher.handle_response({"id": 1, "result": "for-b"}) is True
    assert dispatcher.handle_response({"id": 0, "result": "for-a"}) is True

    assert await first == "for-a"
    assert await second == "for-b"
    assert dispatcher.pending_ids == []


@pytest.mark.asyncio
async def test_error_payload_rejects_with_rpc_error(fake_connection):
    dispatcher = RequestDispatcher(fake_connection)
    fut = dispatcher.call("login", {"username": "x"})
    dispatcher.handle_response({"id": 0, "error": {"message": "Invalid password", "code": -32001}})

    with pytest.raises(RpcError) as exc_info:
        await fut
    assert exc_info.value.message == "Invalid password"
    assert exc_info.value.rpc_code == -32001
    assert "(-32001)" in str(exc_info.value)


@pytest.mark.asyncio
async def test_response_without_result_or_error_is_malformed(fake_connection):
    dispatcher = RequestDispatcher(fake_connection)
    fut = dispatcher.call("queryHeadsets")
    dispatcher.handle_response({"id": 0})

    with pytest.raises(MalformedResponseError) as exc_info:
        await fut
    assert exc_info.value.request_id == 0


@pytest.mark.asyncio
async def test_null_result_resolves_to_none(fake_connection):
    dispatcher = RequestDispatcher(fake_connection)
    fut = dispatcher.call("updateSession")
    dispatcher.handle_response({"id": 0, "result": None})
    assert await fut is None


@pytest.mark.asyncio
async def test_unknown_id_is_dropped_with_warning(fake_connection):
    dispatcher = RequestDispatcher(fake_connection)
    fut = dispatcher.call("a")

    with pytest.warns(UnknownCorrelationWarning):
        assert dispatcher.handle_response({"id": 42, "result": "stray"}) is False

    assert not fut.done()
    assert dispatcher.pending_ids == [0]


@pytest.mark.asyncio
async def test_second_response_for_same_id_is_ignored(fake_connection):
    dispatcher = RequestDispatcher(fake_connection)
    fut = dispatcher.call("a")
    dispatcher.handle_response({"id": 0, "result": 1})

    with pytest.warns(UnknownCorrelationWarning):
        dispatcher.handle_response({"id": 0, "result": 2})
    assert await fut == 1


@pytest.mark.asyncio
async def test_closure_rejects_pending_and_later_calls(fake_connection):
    dispatcher = RequestDispatcher(fake_connection)
    pending = dispatcher.call("queryHeadsets")

    fake_connection.close_now("server went away")

    with pytest.raises(ConnectionClosedError):
        await pending
    assert dispatcher.pending_ids == []

    sent_before = len(fake_connection.sent)
    late = dispatcher.call("queryHeadsets")
    assert late.done()
    assert isinstance(late.exception(), ConnectionClosedError)
    assert len(fake_connection.sent) == sent_before


@pytest.mark.asyncio
async def test_send_failure_rejects_immediately(fake_connection):
    dispatcher = RequestDispatcher(fake_connection)
    fake_connection.closed = True

    fut = dispatcher.call("queryHeadsets")
    assert fut.done()
    assert isinstance(fut.exception(), ConnectionClosedError)
    assert dispatcher.pending_ids == []


@pytest.mark.asyncio
async def test_ids_are_not_reused_after_settlement(fake_connection):
    dispatcher = RequestDispatcher(fake_connection)
    dispatcher.call("a")
    dispatcher.handle_response({"id": 0, "result": True})
    dispatcher.call("b")
    await asyncio.sleep(0)
    assert [m["id"] for m in fake_connection.sent] == [0, 1]


@pytest.mark.asyncio
async def test_boolean_id_does_not_match_a_request(fake_connection):
    dispatcher = RequestDispatcher(fake_connection)
    dispatcher.call("a")
    second = dispatcher.call("b")

    with pytest.warns(UnknownCorrelationWarning):
        assert dispatcher.handle_response({"id": True, "result": "stray"}) is False

    assert not second.done()
    assert dispatcher.pending_ids == [0, 1]


@pytest.mark.asyncio
async def test_version_key_is_configurable(fake_connection):
    dispatcher = RequestDispatcher(fake_connection, version_key="jsonrpc")
    dispatcher.call("getUserLogin")

    assert fake_connection.sent == [{"jsonrpc": "2.0", "method": "getUserLogin", "params": {}, "id": 0}]
