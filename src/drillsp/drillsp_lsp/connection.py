"""JSON-RPC 连接模块

该模块在双工流之上实现 JSON-RPC 2.0 连接：
- 为发出的请求分配 ID，并按 ID 把响应关联到等待中的请求
- 由唯一的分发循环读取入站消息，把对端请求和通知交给处理器
- 串行化所有写入，保证每个消息帧完整写出

等待中的请求表只在事件循环线程中、不含 await 的代码段里修改，
因此分发循环与 call() 对它的修改天然互斥。
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

from drillsp.drillsp_lsp.errors import (
    INTERNAL_ERROR,
    ConnectionClosedError,
    DecodeError,
    RemoteError,
    RequestCancelledError,
)
from drillsp.drillsp_lsp.handler import LoggingNotificationHandler, NotificationHandler
from drillsp.drillsp_lsp.protocol import (
    LSPMessage,
    LSPMessageCodec,
    LSPNotification,
    LSPRequest,
    LSPResponse,
)
from drillsp.drillsp_utils.output import OutputType, PrettyOutput


@dataclass
class PendingRequest:
    """等待响应的请求

    Attributes:
        id: 请求 ID
        method: 方法名
        future: 只写一次的结果槽，完成时保存 LSPResponse
    """

    id: int
    method: str
    future: asyncio.Future


class JSONRPCConnection:
    """基于双工流的 JSON-RPC 连接

    Args:
        stream: 提供 readline()/readexactly()/write() 的双工流
        handler: 对端请求与通知的处理器，默认只记录日志
    """

    MAX_ABANDONED_IDS = 1024

    def __init__(self, stream: Any, handler: Optional[NotificationHandler] = None) -> None:
        self._stream = stream
        self._handler = handler if handler is not None else LoggingNotificationHandler()
        self._next_id = 1
        self._pending: Dict[int, PendingRequest] = {}
        # 已超时或被取消的请求 ID，迟到的响应直接丢弃；只保留最近的 MAX_ABANDONED_IDS 个
        self._abandoned: "OrderedDict[int, None]" = OrderedDict()
        self._write_lock = asyncio.Lock()
        self._closed = False
        self._close_reason = "连接已关闭"
        self._dispatch_task: Optional[asyncio.Task] = None
        self._reply_tasks: Set[asyncio.Task] = set()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        """等待响应的请求数量"""
        return len(self._pending)

    def start(self) -> None:
        """启动分发循环（重复调用无副作用）"""
        if self._dispatch_task is None and not self._closed:
            self._dispatch_task = asyncio.create_task(
                self._dispatch_loop(), name="jsonrpc_dispatch_loop"
            )

    async def call(
        self, method: str, params: Any = None, timeout: Optional[float] = None
    ) -> Any:
        """发送请求并等待对应的响应

        Args:
            method: 方法名
            params: 请求参数
            timeout: 超时时间（秒），None 表示一直等待

        Returns:
            响应中的 result

        Raises:
            RemoteError: 对端返回了错误对象
            RequestCancelledError: 等待响应超时
            ConnectionClosedError: 连接已关闭或在等待期间关闭
            asyncio.CancelledError: 调用方任务被取消
        """
        self._check_open()
        self.start()

        request_id = self._next_id
        self._next_id += 1
        # 先编码，参数无法序列化时不会留下等待中的请求
        data = LSPMessageCodec.encode(LSPRequest("2.0", request_id, method, params))
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(request_id, method, future)

        try:
            await self._write(data)
            response: LSPResponse = await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            self._abandon(request_id)
            PrettyOutput.print(
                f"请求 {method} (id={request_id}) 超时", OutputType.WARNING
            )
            raise RequestCancelledError(method, request_id, timeout) from None
        except asyncio.CancelledError:
            self._abandon(request_id)
            raise
        except ConnectionClosedError:
            self._pending.pop(request_id, None)
            if future.done() and not future.cancelled():
                # 连接关闭时结果槽可能已被写入同一错误
                future.exception()
            raise

        if response.error is not None:
            raise RemoteError.from_error(response.error)
        return response.result

    async def notify(self, method: str, params: Any = None) -> None:
        """发送通知，写入完成即返回

        Raises:
            ConnectionClosedError: 连接已关闭或写入失败
        """
        self._check_open()
        self.start()
        await self._send(LSPNotification("2.0", method, params))

    def _check_open(self) -> None:
        if self._closed:
            raise ConnectionClosedError(self._close_reason)

    def _abandon(self, request_id: int) -> None:
        """移除等待中的请求，并记住它的 ID 以便丢弃迟到的响应"""
        if self._pending.pop(request_id, None) is not None:
            self._abandoned[request_id] = None
            while len(self._abandoned) > self.MAX_ABANDONED_IDS:
                self._abandoned.popitem(last=False)

    async def _send(self, message: LSPMessage) -> None:
        await self._write(LSPMessageCodec.encode(message))

    async def _write(self, data: bytes) -> None:
        async with self._write_lock:
            self._check_open()
            try:
                await self._stream.write(data)
            except (ConnectionError, OSError, RuntimeError) as e:
                raise ConnectionClosedError(f"写入语言服务器失败: {e}") from e

    async def _dispatch_loop(self) -> None:
        """持续读取入站消息并分发，直到流关闭或出错"""
        reason = "语言服务器关闭了输出流"
        try:
            while True:
                message = await LSPMessageCodec.read_message(self._stream)
                if message is None:
                    break
                self._dispatch(message)
        except asyncio.CancelledError:
            reason = "连接被主动关闭"
            raise
        except DecodeError as e:
            reason = f"收到格式错误的消息: {e}"
            PrettyOutput.print(reason, OutputType.ERROR)
        except OSError as e:
            reason = f"读取语言服务器输出失败: {e}"
            PrettyOutput.print(reason, OutputType.ERROR)
        finally:
            self._teardown(reason)

    def _dispatch(self, message: LSPMessage) -> None:
        if isinstance(message, LSPResponse):
            self._fulfill(message)
        elif isinstance(message, LSPRequest):
            self._handle_peer_request(message)
        else:
            self._handle_peer_notification(message)

    def _fulfill(self, response: LSPResponse) -> None:
        request_id = response.id
        pending = None
        abandoned = False
        if isinstance(request_id, int) and not isinstance(request_id, bool):
            pending = self._pending.pop(request_id, None)
            abandoned = request_id in self._abandoned

        if pending is None:
            if abandoned:
                self._abandoned.pop(request_id, None)
                PrettyOutput.print(
                    f"丢弃已取消请求的迟到响应 (id={request_id})", OutputType.DEBUG
                )
            else:
                PrettyOutput.print(
                    f"收到未知请求 ID 的响应，已丢弃: {request_id!r}", OutputType.WARNING
                )
            return

        if not pending.future.done():
            pending.future.set_result(response)

    def _handle_peer_notification(self, notification: LSPNotification) -> None:
        try:
            self._handler.handle(notification.method, None, notification.params)
        except Exception as e:
            PrettyOutput.print(
                f"处理服务器通知 {notification.method} 失败: {e}", OutputType.WARNING
            )

    def _handle_peer_request(self, request: LSPRequest) -> None:
        try:
            result = self._handler.handle(request.method, request.id, request.params)
            response = LSPResponse("2.0", request.id, result, None)
        except RemoteError as e:
            response = LSPResponse("2.0", request.id, None, e.to_error())
        except Exception as e:
            PrettyOutput.print(
                f"处理服务器请求 {request.method} 失败: {e}", OutputType.WARNING
            )
            response = LSPResponse(
                "2.0", request.id, None, {"code": INTERNAL_ERROR, "message": str(e)}
            )

        # 在独立任务中回复，分发循环不等待出站管道
        task = asyncio.create_task(self._reply(response))
        self._reply_tasks.add(task)
        task.add_done_callback(self._reply_tasks.discard)

    async def _reply(self, response: LSPResponse) -> None:
        try:
            await self._send(response)
        except ConnectionClosedError as e:
            PrettyOutput.print(
                f"无法回复服务器请求 (id={response.id}): {e}", OutputType.DEBUG
            )

    def _teardown(self, reason: str) -> None:
        """关闭连接，让所有等待中的请求以 ConnectionClosedError 失败"""
        if not self._closed:
            self._closed = True
            self._close_reason = reason

        pending = list(self._pending.values())
        self._pending.clear()
        self._abandoned.clear()
        for request in pending:
            if not request.future.done():
                request.future.set_exception(
                    ConnectionClosedError(
                        f"{self._close_reason}: 请求 {request.method} "
                        f"(id={request.id}) 未收到响应"
                    )
                )

    async def wait_closed(self) -> None:
        """等待分发循环结束"""
        if self._dispatch_task is not None:
            await asyncio.wait([self._dispatch_task])

    async def close(self) -> None:
        """停止分发循环并关闭连接"""
        task = self._dispatch_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._teardown("连接被主动关闭")

        if self._reply_tasks:
            for reply_task in list(self._reply_tasks):
                reply_task.cancel()
            await asyncio.gather(*list(self._reply_tasks), return_exceptions=True)

    async def __aenter__(self) -> "JSONRPCConnection":
        self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
