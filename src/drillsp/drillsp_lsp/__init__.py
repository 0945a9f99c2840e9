"""drillsp_lsp - 基于 stdio 的 LSP 客户端

该模块提供与语言服务器子进程双向通信的 JSON-RPC 客户端，
并按 LSP 握手顺序驱动服务器。

主要功能：
    - 进程启动：启动服务器并转发其 stderr
    - 消息编解码：Content-Length 头 + UTF-8 JSON
    - JSON-RPC 连接：按 ID 关联响应，并发分发服务器通知
    - 握手：initialize → initialized → didOpen → 功能请求
    - CLI 接口：drillsp 命令列出文件中的函数

使用示例：
    >>> from drillsp.drillsp_lsp import LSPClient
    >>> async with LSPClient("gopls", ["-mode=stdio"], "/path/to/project") as client:
    ...     symbols = await client.document_symbols("main.go", text, "go")
"""

from drillsp.drillsp_lsp.client import LSPClient
from drillsp.drillsp_lsp.config import LSPConfigReader
from drillsp.drillsp_lsp.connection import JSONRPCConnection
from drillsp.drillsp_lsp.errors import (
    ConnectionClosedError,
    DecodeError,
    LaunchError,
    LSPError,
    ProtocolStateError,
    RemoteError,
    RequestCancelledError,
)
from drillsp.drillsp_lsp.handler import LoggingNotificationHandler, NotificationHandler
from drillsp.drillsp_lsp.handshake import HandshakeSequencer, HandshakeState

__all__ = [
    "LSPClient",
    "LSPConfigReader",
    "JSONRPCConnection",
    "HandshakeSequencer",
    "HandshakeState",
    "NotificationHandler",
    "LoggingNotificationHandler",
    "LSPError",
    "LaunchError",
    "DecodeError",
    "RemoteError",
    "RequestCancelledError",
    "ConnectionClosedError",
    "ProtocolStateError",
]
