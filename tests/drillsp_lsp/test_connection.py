# -*- coding: utf-8 -*-
"""drillsp_lsp.connection 模块单元测试"""
import asyncio

import pytest

from drillsp.drillsp_lsp.connection import JSONRPCConnection
from drillsp.drillsp_lsp.errors import (
    INTERNAL_ERROR,
    METHOD_NOT_FOUND,
    ConnectionClosedError,
    RemoteError,
    RequestCancelledError,
)
from drillsp.drillsp_lsp.handler import NotificationHandler
from drillsp.drillsp_lsp.protocol import LSPNotification, LSPRequest, LSPResponse
from drillsp.drillsp_utils.output import OutputType


class RecordingHandler(NotificationHandler):
    """记录收到的对端消息，并按预设返回结果"""

    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result
        self.error = error

    def handle(self, method, request_id, params):
        self.calls.append((method, request_id, params))
        if self.error is not None:
            raise self.error
        return self.result


class TestCall:
    """测试请求与响应的关联"""

    @pytest.mark.asyncio
    async def test_single_call(self, make_peer):
        """测试单个请求返回对应的结果"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            task = asyncio.create_task(
                conn.call(
                    "textDocument/documentSymbol",
                    {"textDocument": {"uri": "file:///tmp/a.go"}},
                )
            )
            request = await peer.receive()

            assert isinstance(request, LSPRequest)
            assert request.id == 1
            assert request.method == "textDocument/documentSymbol"
            assert conn.pending_count == 1

            peer.send({"jsonrpc": "2.0", "id": request.id, "result": [{"name": "F"}]})
            assert await asyncio.wait_for(task, timeout=2) == [{"name": "F"}]
            assert conn.pending_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_calls_out_of_order(self, make_peer):
        """测试并发请求按 ID 匹配乱序到达的响应"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            tasks = [
                asyncio.create_task(conn.call(f"method/{i}", {"index": i}))
                for i in range(3)
            ]
            requests = [await peer.receive() for _ in range(3)]
            ids = [r.id for r in requests]
            assert len(set(ids)) == 3

            for request in reversed(requests):
                peer.send(
                    {
                        "jsonrpc": "2.0",
                        "id": request.id,
                        "result": f"answer-{request.params['index']}",
                    }
                )

            results = await asyncio.wait_for(asyncio.gather(*tasks), timeout=2)
            assert results == ["answer-0", "answer-1", "answer-2"]

    @pytest.mark.asyncio
    async def test_ids_are_unique_and_increasing(self, make_peer):
        """测试请求 ID 单调递增"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            for expected_id in (1, 2, 3):
                task = asyncio.create_task(conn.call("ping"))
                request = await peer.receive()
                assert request.id == expected_id
                peer.send({"jsonrpc": "2.0", "id": request.id, "result": None})
                assert await asyncio.wait_for(task, timeout=2) is None

    @pytest.mark.asyncio
    async def test_remote_error(self, make_peer):
        """测试对端返回错误对象"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            task = asyncio.create_task(conn.call("initialize", {}))
            request = await peer.receive()
            peer.send(
                {
                    "jsonrpc": "2.0",
                    "id": request.id,
                    "error": {"code": -32002, "message": "not ready", "data": {"x": 1}},
                }
            )

            with pytest.raises(RemoteError) as exc_info:
                await asyncio.wait_for(task, timeout=2)
            assert exc_info.value.code == -32002
            assert exc_info.value.message == "not ready"
            assert exc_info.value.data == {"x": 1}
            assert not conn.closed


class TestCancellation:
    """测试超时与取消"""

    @pytest.mark.asyncio
    async def test_timeout_discards_late_response(self, make_peer, output_records):
        """测试超时后迟到的响应被丢弃，其他请求不受影响"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            with pytest.raises(RequestCancelledError) as exc_info:
                await conn.call("slow/method", timeout=0.05)
            assert exc_info.value.method == "slow/method"
            assert exc_info.value.request_id == 1
            assert conn.pending_count == 0

            slow = await peer.receive()
            peer.send({"jsonrpc": "2.0", "id": slow.id, "result": "late"})

            task = asyncio.create_task(conn.call("fast/method"))
            fast = await peer.receive()
            peer.send({"jsonrpc": "2.0", "id": fast.id, "result": "ok"})
            assert await asyncio.wait_for(task, timeout=2) == "ok"

        assert any("迟到" in t for t in output_records.texts(OutputType.DEBUG))
        assert not any("未知" in t for t in output_records.texts(OutputType.WARNING))

    @pytest.mark.asyncio
    async def test_task_cancellation(self, make_peer):
        """测试调用方任务被取消时移除等待中的请求"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            task = asyncio.create_task(conn.call("slow/method"))
            request = await peer.receive()
            assert conn.pending_count == 1

            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            assert conn.pending_count == 0

            peer.send({"jsonrpc": "2.0", "id": request.id, "result": "late"})
            follow_up = asyncio.create_task(conn.call("ping"))
            ping = await peer.receive()
            peer.send({"jsonrpc": "2.0", "id": ping.id, "result": "pong"})
            assert await asyncio.wait_for(follow_up, timeout=2) == "pong"

    @pytest.mark.asyncio
    async def test_unknown_response_id_is_logged(self, make_peer, output_records):
        """测试未知 ID 的响应只记录警告"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            peer.send({"jsonrpc": "2.0", "id": 99, "result": None})
            task = asyncio.create_task(conn.call("ping"))
            request = await peer.receive()
            peer.send({"jsonrpc": "2.0", "id": request.id, "result": "pong"})
            assert await asyncio.wait_for(task, timeout=2) == "pong"

        assert any("99" in t for t in output_records.texts(OutputType.WARNING))

    @pytest.mark.asyncio
    async def test_timeout_keeps_sibling_call_pending(self, make_peer):
        """测试一个请求超时后，同时等待中的其他请求仍然能收到结果"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            first = asyncio.create_task(conn.call("textDocument/documentSymbol"))
            first_request = await peer.receive()

            with pytest.raises(RequestCancelledError):
                await conn.call("slow/method", timeout=0.05)
            slow = await peer.receive()
            assert conn.pending_count == 1
            assert not first.done()

            peer.send({"jsonrpc": "2.0", "id": slow.id, "result": "late"})
            peer.send({"jsonrpc": "2.0", "id": first_request.id, "result": ["F"]})
            assert await asyncio.wait_for(first, timeout=2) == ["F"]
            assert conn.pending_count == 0

    @pytest.mark.asyncio
    async def test_cancellation_keeps_sibling_call_pending(self, make_peer):
        """测试取消一个请求不影响同时等待中的其他请求"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            first = asyncio.create_task(conn.call("first"))
            second = asyncio.create_task(conn.call("second"))
            first_request = await peer.receive()
            second_request = await peer.receive()

            second.cancel()
            with pytest.raises(asyncio.CancelledError):
                await second
            assert conn.pending_count == 1

            peer.send({"jsonrpc": "2.0", "id": second_request.id, "result": "late"})
            peer.send({"jsonrpc": "2.0", "id": first_request.id, "result": 1})
            assert await asyncio.wait_for(first, timeout=2) == 1

    @pytest.mark.asyncio
    async def test_abandoned_ids_are_bounded(self, make_peer, monkeypatch):
        """测试只记住最近若干个已放弃的请求 ID"""
        monkeypatch.setattr(JSONRPCConnection, "MAX_ABANDONED_IDS", 2)
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            for _ in range(3):
                with pytest.raises(RequestCancelledError):
                    await conn.call("slow/method", timeout=0.01)

            assert list(conn._abandoned) == [2, 3]

    @pytest.mark.asyncio
    async def test_unserializable_params(self, make_peer):
        """测试参数无法序列化时不留下等待中的请求，也不写入"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            with pytest.raises(TypeError):
                await conn.call("textDocument/didOpen", {"text": object()})
            assert conn.pending_count == 0
            assert peer.write_count == 0

            task = asyncio.create_task(conn.call("ping"))
            request = await peer.receive()
            assert request.id == 2
            peer.send({"jsonrpc": "2.0", "id": request.id, "result": "pong"})
            assert await asyncio.wait_for(task, timeout=2) == "pong"


class TestTeardown:
    """测试连接关闭"""

    @pytest.mark.asyncio
    async def test_eof_fails_all_pending(self, make_peer):
        """测试对端关闭输出流时所有等待中的请求都失败"""
        peer = make_peer()
        conn = JSONRPCConnection(peer)
        tasks = [asyncio.create_task(conn.call(f"m/{i}")) for i in range(3)]
        for _ in range(3):
            await peer.receive()

        peer.close()
        results = await asyncio.wait_for(
            asyncio.gather(*tasks, return_exceptions=True), timeout=2
        )
        assert all(isinstance(r, ConnectionClosedError) for r in results)
        assert conn.closed
        assert conn.pending_count == 0
        await conn.wait_closed()

    @pytest.mark.asyncio
    async def test_calls_after_close_do_not_write(self, make_peer):
        """测试连接关闭后的调用直接失败且不写入"""
        peer = make_peer()
        conn = JSONRPCConnection(peer)
        conn.start()
        peer.close()
        await asyncio.wait_for(conn.wait_closed(), timeout=2)

        writes = peer.write_count
        with pytest.raises(ConnectionClosedError):
            await conn.call("ping")
        with pytest.raises(ConnectionClosedError):
            await conn.notify("exit")
        assert peer.write_count == writes

    @pytest.mark.asyncio
    async def test_decode_error_closes_connection(self, make_peer, output_records):
        """测试格式错误的帧导致连接关闭"""
        peer = make_peer()
        conn = JSONRPCConnection(peer)
        task = asyncio.create_task(conn.call("ping"))
        await peer.receive()

        peer.send_raw(b"Content-Length: 5\r\n\r\n{bad}")
        with pytest.raises(ConnectionClosedError):
            await asyncio.wait_for(task, timeout=2)
        assert conn.closed
        assert output_records.texts(OutputType.ERROR)

    @pytest.mark.asyncio
    async def test_close_fails_pending(self, make_peer):
        """测试主动关闭时等待中的请求失败"""
        peer = make_peer()
        conn = JSONRPCConnection(peer)
        task = asyncio.create_task(conn.call("ping"))
        await peer.receive()

        await conn.close()
        with pytest.raises(ConnectionClosedError):
            await asyncio.wait_for(task, timeout=2)
        await conn.close()
        assert conn.closed

    @pytest.mark.asyncio
    async def test_write_failure(self, make_peer):
        """测试写入失败转换为 ConnectionClosedError"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            peer.fail_writes = True
            with pytest.raises(ConnectionClosedError):
                await conn.call("ping")
            assert conn.pending_count == 0


class TestPeerMessages:
    """测试对端发起的请求和通知"""

    @pytest.mark.asyncio
    async def test_notification_goes_to_handler(self, make_peer):
        """测试通知交给处理器，不会回复"""
        peer = make_peer()
        handler = RecordingHandler()
        async with JSONRPCConnection(peer, handler) as conn:
            peer.send(
                {
                    "jsonrpc": "2.0",
                    "method": "window/showMessage",
                    "params": {"type": 3, "message": "hello"},
                }
            )
            task = asyncio.create_task(conn.call("ping"))
            request = await peer.receive()
            peer.send({"jsonrpc": "2.0", "id": request.id, "result": None})
            await asyncio.wait_for(task, timeout=2)

        assert handler.calls == [
            ("window/showMessage", None, {"type": 3, "message": "hello"})
        ]

    @pytest.mark.asyncio
    async def test_request_is_answered(self, make_peer):
        """测试对端请求使用处理器的返回值回复"""
        peer = make_peer()
        handler = RecordingHandler(result={"ok": True})
        async with JSONRPCConnection(peer, handler):
            peer.send(
                {
                    "jsonrpc": "2.0",
                    "id": "srv-1",
                    "method": "window/workDoneProgress/create",
                    "params": {"token": "t"},
                }
            )
            reply = await peer.receive()

        assert reply == LSPResponse("2.0", "srv-1", {"ok": True}, None)
        assert handler.calls[0][1] == "srv-1"

    @pytest.mark.asyncio
    async def test_unknown_request_gets_method_not_found(self, make_peer):
        """测试默认处理器对未知请求回复 MethodNotFound"""
        peer = make_peer()
        async with JSONRPCConnection(peer):
            peer.send({"jsonrpc": "2.0", "id": 5, "method": "custom/unknown"})
            reply = await peer.receive()

        assert isinstance(reply, LSPResponse)
        assert reply.id == 5
        assert reply.error["code"] == METHOD_NOT_FOUND

    @pytest.mark.asyncio
    async def test_handler_failure_is_contained(self, make_peer):
        """测试处理器异常不会中断分发循环"""
        peer = make_peer()
        handler = RecordingHandler(error=RuntimeError("boom"))
        async with JSONRPCConnection(peer, handler) as conn:
            peer.send({"jsonrpc": "2.0", "method": "custom/notify"})
            peer.send({"jsonrpc": "2.0", "id": 8, "method": "custom/request"})
            reply = await peer.receive()
            assert reply.error == {"code": INTERNAL_ERROR, "message": "boom"}

            task = asyncio.create_task(conn.call("ping"))
            request = await peer.receive()
            peer.send({"jsonrpc": "2.0", "id": request.id, "result": "pong"})
            assert await asyncio.wait_for(task, timeout=2) == "pong"

        assert [c[0] for c in handler.calls] == ["custom/notify", "custom/request"]


class TestWrites:
    """测试写入串行化"""

    @pytest.mark.asyncio
    async def test_concurrent_notifications_are_whole_frames(self, make_peer):
        """测试并发通知每个都是完整的帧"""
        peer = make_peer()
        async with JSONRPCConnection(peer) as conn:
            await asyncio.gather(
                *(conn.notify("custom/event", {"index": i}) for i in range(20))
            )
            messages = [await peer.receive() for _ in range(20)]

        assert peer.write_count == 20
        assert all(isinstance(m, LSPNotification) for m in messages)
        assert sorted(m.params["index"] for m in messages) == list(range(20))
