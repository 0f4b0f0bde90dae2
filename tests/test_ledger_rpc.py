# SPDX-License-Identifier: MIT

import asyncio
import json
import unittest
from typing import Any, Dict, List

from evolution_bridge.errors import (
    DeliveryError,
    RpcDeliveryError,
    RpcNotConnectedError,
    RpcRemoteError,
    RpcTimeoutError,
)
from evolution_bridge.ledger_rpc import LedgerRpcClient


class _FakeTransport:
    def __init__(self, connected: bool = True) -> None:
        self.connected = connected
        self.fail_send = False
        self.sent: List[Dict[str, Any]] = []
        self.handler = None

    def set_message_handler(self, handler) -> None:
        self.handler = handler

    async def send(self, message: str) -> None:
        if self.fail_send:
            raise DeliveryError("socket is closing")
        self.sent.append(json.loads(message))

    def deliver(self, payload: Any) -> None:
        raw = payload if isinstance(payload, str) else json.dumps(payload)
        self.handler(raw)


async def _wait_for_sent(transport: _FakeTransport, count: int) -> None:
    for _ in range(50):
        if len(transport.sent) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} requests, saw {len(transport.sent)}")


class LedgerRpcCorrelationTest(unittest.TestCase):
    def run_async(self, coro):
        return asyncio.run(coro)

    def test_request_envelope_and_monotonic_ids(self):
        async def scenario():
            transport = _FakeTransport()
            rpc = LedgerRpcClient(transport)
            first = asyncio.create_task(rpc.call("ledger.ping", {"n": 1}))
            second = asyncio.create_task(rpc.call("ledger.ping", {"n": 2}))
            await _wait_for_sent(transport, 2)

            self.assertEqual(
                transport.sent[0],
                {"jsonrpc": "2.0", "id": 1, "method": "ledger.ping", "params": {"n": 1}},
            )
            self.assertEqual(transport.sent[1]["id"], 2)
            self.assertEqual(rpc.pending_ids(), [1, 2])

            transport.deliver({"jsonrpc": "2.0", "id": 1, "result": "a"})
            transport.deliver({"jsonrpc": "2.0", "id": 2, "result": "b"})
            return await first, await second

        self.assertEqual(self.run_async(scenario()), ("a", "b"))

    def test_out_of_order_responses_resolve_their_own_calls(self):
        async def scenario():
            transport = _FakeTransport()
            rpc = LedgerRpcClient(transport)
            tasks = [
                asyncio.create_task(rpc.call("ledger.echo", {"n": n})) for n in range(4)
            ]
            await _wait_for_sent(transport, 4)

            for request_id in (3, 1, 4, 2):
                transport.deliver(
                    {"jsonrpc": "2.0", "id": request_id, "result": f"r{request_id}"}
                )

            results = await asyncio.gather(*tasks)
            return results, rpc.pending_count

        results, pending = self.run_async(scenario())
        self.assertEqual(results, ["r1", "r2", "r3", "r4"])
        self.assertEqual(pending, 0)

    def test_unmatched_and_malformed_responses_are_ignored(self):
        async def scenario():
            transport = _FakeTransport()
            rpc = LedgerRpcClient(transport)
            task = asyncio.create_task(rpc.call("ledger.echo", {}))
            await _wait_for_sent(transport, 1)

            transport.deliver({"jsonrpc": "2.0", "id": 99, "result": "stray"})
            transport.deliver({"jsonrpc": "2.0", "id": "1", "result": "string id"})
            transport.deliver({"jsonrpc": "2.0", "id": True, "result": "bool id"})
            transport.deliver({"jsonrpc": "2.0", "id": 1.5, "result": "float id"})
            transport.deliver({"jsonrpc": "2.0", "result": "no id"})
            transport.deliver("{not json")
            transport.deliver([1, 2, 3])

            await asyncio.sleep(0)
            self.assertFalse(task.done())
            self.assertEqual(rpc.pending_count, 1)

            transport.deliver({"jsonrpc": "2.0", "id": 1, "result": "mine"})
            return await task

        self.assertEqual(self.run_async(scenario()), "mine")

    def test_response_settles_call_exactly_once(self):
        async def scenario():
            transport = _FakeTransport()
            rpc = LedgerRpcClient(transport)
            task = asyncio.create_task(rpc.call("ledger.echo", {}))
            await _wait_for_sent(transport, 1)

            transport.deliver({"jsonrpc": "2.0", "id": 1, "result": "first"})
            transport.deliver({"jsonrpc": "2.0", "id": 1, "error": {"code": 1}})
            return await task

        self.assertEqual(self.run_async(scenario()), "first")

    def test_remote_error_payload_is_surfaced_verbatim(self):
        error_payload = {"code": -32001, "message": "frame rejected", "data": {"k": 1}}

        async def scenario():
            transport = _FakeTransport()
            rpc = LedgerRpcClient(transport)
            task = asyncio.create_task(rpc.call("ledger.applyEvolutionFrame", {}))
            await _wait_for_sent(transport, 1)
            transport.deliver({"jsonrpc": "2.0", "id": 1, "error": error_payload})
            with self.assertRaises(RpcRemoteError) as ctx:
                await task
            return ctx.exception, rpc.pending_count

        error, pending = self.run_async(scenario())
        self.assertEqual(error.error, error_payload)
        self.assertEqual(error.method, "ledger.applyEvolutionFrame")
        self.assertEqual(pending, 0)

    def test_null_error_member_resolves_with_result(self):
        async def scenario():
            transport = _FakeTransport()
            rpc = LedgerRpcClient(transport)
            task = asyncio.create_task(rpc.call("ledger.echo", {}))
            await _wait_for_sent(transport, 1)
            transport.deliver({"jsonrpc": "2.0", "id": 1, "result": 7, "error": None})
            return await task

        self.assertEqual(self.run_async(scenario()), 7)


class LedgerRpcFailureTest(unittest.TestCase):
    def run_async(self, coro):
        return asyncio.run(coro)

    def test_call_fails_fast_when_not_connected(self):
        async def scenario():
            transport = _FakeTransport(connected=False)
            rpc = LedgerRpcClient(transport)
            with self.assertRaises(RpcNotConnectedError):
                await rpc.call("ledger.echo", {})
            return transport.sent, rpc.pending_count

        sent, pending = self.run_async(scenario())
        self.assertEqual(sent, [])
        self.assertEqual(pending, 0)

    def test_send_failure_removes_pending_call(self):
        async def scenario():
            transport = _FakeTransport()
            transport.fail_send = True
            rpc = LedgerRpcClient(transport)
            with self.assertRaises(RpcDeliveryError):
                await rpc.call("ledger.echo", {})
            return rpc.pending_count

        self.assertEqual(self.run_async(scenario()), 0)

    def test_ids_are_not_reused_after_send_failure(self):
        async def scenario():
            transport = _FakeTransport()
            rpc = LedgerRpcClient(transport)
            transport.fail_send = True
            with self.assertRaises(RpcDeliveryError):
                await rpc.call("ledger.echo", {})
            transport.fail_send = False
            task = asyncio.create_task(rpc.call("ledger.echo", {}))
            await _wait_for_sent(transport, 1)
            request_id = transport.sent[0]["id"]
            transport.deliver({"jsonrpc": "2.0", "id": request_id, "result": "ok"})
            await task
            return request_id

        self.assertEqual(self.run_async(scenario()), 2)

    def test_pending_calls_survive_reconnect(self):
        async def scenario():
            transport = _FakeTransport()
            rpc = LedgerRpcClient(transport)
            before = asyncio.create_task(rpc.call("ledger.echo", {"when": "before"}))
            await _wait_for_sent(transport, 1)

            # Connection drops: new calls fail, the old one stays pending.
            transport.connected = False
            with self.assertRaises(RpcNotConnectedError):
                await rpc.call("ledger.echo", {"when": "during"})
            self.assertEqual(rpc.pending_ids(), [1])

            transport.connected = True
            after = asyncio.create_task(rpc.call("ledger.echo", {"when": "after"}))
            await _wait_for_sent(transport, 2)
            transport.deliver({"jsonrpc": "2.0", "id": 2, "result": "after-ok"})
            after_result = await after

            await asyncio.sleep(0)
            still_pending = not before.done()
            transport.deliver({"jsonrpc": "2.0", "id": 1, "result": "before-ok"})
            return after_result, still_pending, await before

        after_result, still_pending, before_result = self.run_async(scenario())
        self.assertEqual(after_result, "after-ok")
        self.assertTrue(still_pending)
        self.assertEqual(before_result, "before-ok")

    def test_call_timeout_removes_pending_entry(self):
        async def scenario():
            transport = _FakeTransport()
            rpc = LedgerRpcClient(transport, call_timeout=0.01)
            with self.assertRaises(RpcTimeoutError):
                await rpc.call("ledger.echo", {})
            # A late response is ignored without error.
            transport.deliver({"jsonrpc": "2.0", "id": 1, "result": "late"})
            return rpc.pending_count

        self.assertEqual(self.run_async(scenario()), 0)

    def test_abandoned_call_does_not_break_late_response(self):
        async def scenario():
            transport = _FakeTransport()
            rpc = LedgerRpcClient(transport)
            task = asyncio.create_task(rpc.call("ledger.echo", {}))
            await _wait_for_sent(transport, 1)
            task.cancel()
            with self.assertRaises(asyncio.CancelledError):
                await task
            self.assertEqual(rpc.pending_count, 1)
            transport.deliver({"jsonrpc": "2.0", "id": 1, "result": "late"})
            return rpc.pending_count

        self.assertEqual(self.run_async(scenario()), 0)
