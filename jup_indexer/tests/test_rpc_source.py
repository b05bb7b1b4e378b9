"""
Tests for the RPC block source with a stubbed aiohttp session
"""

import aiohttp
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from jup_indexer.exceptions import RpcException
from jup_indexer.source.rpc_source import RpcBlockSource


def make_session(responder):
    """Session whose post() answers with responder(payload) -> (status, json)"""
    session = MagicMock()

    def post(url, json=None):
        status, body = responder(json)
        resp = MagicMock()
        resp.status = status
        resp.json = AsyncMock(return_value=body)
        ctx = MagicMock()
        ctx.__aenter__ = AsyncMock(return_value=resp)
        ctx.__aexit__ = AsyncMock(return_value=False)
        return ctx

    session.post = MagicMock(side_effect=post)
    return session


def block_responder(skipped=()):
    def respond(payload):
        slot = payload["params"][0]
        if slot in skipped:
            return 200, {"jsonrpc": "2.0", "id": payload["id"],
                         "error": {"code": -32007, "message": "Slot skipped"}}
        return 200, {"jsonrpc": "2.0", "id": payload["id"],
                     "result": {"blockTime": 1_719_000_000 + slot, "blockHeight": slot, "transactions": []}}
    return respond


def run(coro):
    return asyncio.run(coro)


class TestRpcBlockSource:
    """getBlock fetching"""

    def test_requires_url(self):
        with pytest.raises(RpcException):
            RpcBlockSource("")

    def test_skipped_slot_is_none(self):
        source = RpcBlockSource("http://rpc", session=make_session(block_responder(skipped={5})))
        assert run(source.get_block(5)) is None

    def test_fetch_range_in_slot_order(self):
        source = RpcBlockSource("http://rpc", session=make_session(block_responder(skipped={11})))
        blocks = run(source.fetch_range(10, 13))

        assert [b.slot for b in blocks] == [10, 12, 13]
        assert blocks[0].timestamp == 1_719_000_010

    def test_iter_batches_windows(self):
        source = RpcBlockSource("http://rpc", session=make_session(block_responder()))

        async def collect():
            return [[b.slot for b in blocks] async for blocks in source.iter_batches(1, 5, 2)]

        assert run(collect()) == [[1, 2], [3, 4], [5]]

    def test_rpc_error_raised_after_retries(self):
        calls = []

        def respond(payload):
            calls.append(payload)
            return 200, {"jsonrpc": "2.0", "id": payload["id"],
                         "error": {"code": -32004, "message": "Block not available"}}

        source = RpcBlockSource("http://rpc", session=make_session(respond))
        with patch("jup_indexer.utils.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(RpcException):
                run(source.get_block(7))
        assert len(calls) == 3

    def test_server_error_retried(self):
        calls = []

        def respond(payload):
            calls.append(payload)
            return 503, {}

        source = RpcBlockSource("http://rpc", session=make_session(respond))
        with patch("jup_indexer.utils.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(RpcException):
                run(source.get_block(7))
        assert len(calls) == 3

    def test_client_error_not_retried(self):
        calls = []

        def respond(payload):
            calls.append(payload)
            return 401, {}

        source = RpcBlockSource("http://rpc", session=make_session(respond))
        with pytest.raises(RpcException):
            run(source.get_block(7))
        assert len(calls) == 1

    def test_get_slot(self):
        source = RpcBlockSource(
            "http://rpc",
            session=make_session(lambda payload: (200, {"jsonrpc": "2.0", "id": 1, "result": 260_000_000}))
        )
        assert run(source.get_slot()) == 260_000_000

    def test_transport_error_becomes_rpc_exception(self):
        session = MagicMock()
        session.post = MagicMock(side_effect=aiohttp.ClientConnectionError("connection reset"))

        source = RpcBlockSource("http://rpc", session=session)
        with patch("jup_indexer.utils.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(RpcException):
                run(source.get_block(7))
        assert session.post.call_count == 3
