"""LSP 客户端模块

把进程启动、JSON-RPC 连接和握手组合在一起，提供
启动、文档符号查询、关闭等功能。
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

from drillsp.drillsp_lsp.connection import JSONRPCConnection
from drillsp.drillsp_lsp.errors import LSPError, ProtocolStateError
from drillsp.drillsp_lsp.handler import NotificationHandler
from drillsp.drillsp_lsp.handshake import HandshakeSequencer
from drillsp.drillsp_lsp.launcher import ServerProcess, launch_server
from drillsp.drillsp_lsp.symbols import SymbolInfo
from drillsp.drillsp_utils.config import (
    get_initialize_timeout,
    get_request_timeout,
    get_shutdown_timeout,
)
from drillsp.drillsp_utils.output import OutputType, PrettyOutput


class LSPClient:
    """LSP 客户端类

    负责启动 LSP 服务器并与之通信，提供初始化、文档打开、符号查询等功能。

    使用示例：
        >>> async with LSPClient("gopls", ["-mode=stdio"], "/path/to/project") as client:
        ...     symbols = await client.document_symbols("main.go", text, "go")
    """

    def __init__(
        self,
        command: str,
        args: List[str],
        root_path: str,
        handler: Optional[NotificationHandler] = None,
        env: Optional[Dict[str, str]] = None,
        trace: bool = False,
    ) -> None:
        """初始化 LSP 客户端

        Args:
            command: LSP 服务器可执行文件命令
            args: 启动参数列表
            root_path: 工作区根目录
            handler: 服务器消息处理器
            env: 追加给服务器进程的环境变量
            trace: 是否记录原始字节流
        """
        self.command = command
        self.args = args
        self.root_path = str(Path(root_path).resolve())
        self.handler = handler
        self.env = env
        self.trace = trace
        self.server: Optional[ServerProcess] = None
        self.connection: Optional[JSONRPCConnection] = None
        self.session: Optional[HandshakeSequencer] = None

    @property
    def root_uri(self) -> str:
        return Path(self.root_path).as_uri()

    async def start(self) -> Dict[str, Any]:
        """启动服务器并完成握手

        Returns:
            服务器能力

        Raises:
            LaunchError: 服务器无法启动
            RemoteError: initialize 返回错误
            RequestCancelledError: initialize 超时
            ConnectionClosedError: 服务器在握手期间退出
        """
        self.server = await launch_server(
            self.command,
            self.args,
            env=self.env,
            trace=self.trace,
        )
        self.connection = JSONRPCConnection(self.server.stream, self.handler)
        self.connection.start()
        self.session = HandshakeSequencer(self.connection, self.root_uri)

        try:
            capabilities = await self.session.start(timeout=get_initialize_timeout())
        except BaseException:
            await self._close_transport()
            raise
        PrettyOutput.print("LSP 服务器握手完成", OutputType.SUCCESS)
        return capabilities

    def _require_session(self) -> HandshakeSequencer:
        if self.session is None:
            raise ProtocolStateError("LSP client not started")
        return self.session

    async def open_document(self, uri: str, text: str, language_id: str) -> None:
        """打开文档（已打开的文档不会重复发送 didOpen）"""
        session = self._require_session()
        if not session.is_open(uri):
            await session.open_document(uri, language_id, text)

    async def document_symbols(
        self, file_path: str, text: str, language_id: str
    ) -> List[SymbolInfo]:
        """打开文档并获取文档符号

        Args:
            file_path: 文件路径
            text: 文件内容
            language_id: 语言标识

        Returns:
            符号信息列表
        """
        uri = Path(file_path).resolve().as_uri()
        await self.open_document(uri, text, language_id)
        symbols = await self._require_session().document_symbols(
            uri, timeout=get_request_timeout()
        )
        PrettyOutput.print(f"Fetched {len(symbols)} symbols", OutputType.INFO)
        return symbols

    async def stop(self) -> None:
        """关闭 LSP 服务器

        先尝试按协议 shutdown/exit，失败时直接关闭连接与进程。
        """
        if self.session is not None and self.session.is_ready:
            try:
                await self.session.shutdown(timeout=get_shutdown_timeout())
            except LSPError as e:
                PrettyOutput.print(f"LSP shutdown 失败: {e}", OutputType.WARNING)
        await self._close_transport()

    async def _close_transport(self) -> None:
        if self.connection is not None:
            await self.connection.close()
        if self.server is not None:
            await self.server.terminate(timeout=get_shutdown_timeout())

    async def __aenter__(self) -> "LSPClient":
        """异步上下文管理器入口"""
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """异步上下文管理器出口"""
        await self.stop()
