"""LSP 握手模块

按 LSP 要求的顺序驱动连接：
1. initialize 请求（携带工作区根目录），等待服务器返回能力
2. initialized 通知（必须携带空对象参数）
3. 进入 READY 后才能打开文档并发起功能请求

在 READY 之前发起功能请求属于调用方违反约定，会抛出 ProtocolStateError。
"""

import os
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from drillsp.drillsp_lsp.connection import JSONRPCConnection
from drillsp.drillsp_lsp.errors import ProtocolStateError
from drillsp.drillsp_lsp.symbols import SymbolInfo, parse_symbols
from drillsp.drillsp_utils.output import OutputType, PrettyOutput


class HandshakeState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


# 客户端声明的能力
CLIENT_CAPABILITIES: Dict[str, Any] = {
    "textDocument": {
        "documentSymbol": {"hierarchicalDocumentSymbolSupport": True},
        "synchronization": {"didSave": False, "dynamicRegistration": False},
    },
    "window": {"workDoneProgress": True, "showMessage": {}},
    "workspace": {"configuration": True},
}


class HandshakeSequencer:
    """LSP 握手与文档请求的状态机

    Args:
        connection: 已启动的 JSON-RPC 连接
        root_uri: 工作区根目录 URI（如 file:///path/to/project）
        process_id: 客户端进程 ID，默认为当前进程
    """

    def __init__(
        self,
        connection: JSONRPCConnection,
        root_uri: str,
        process_id: Optional[int] = None,
    ) -> None:
        self.connection = connection
        self.root_uri = root_uri
        self.process_id = process_id if process_id is not None else os.getpid()
        self.state = HandshakeState.UNINITIALIZED
        self.server_capabilities: Dict[str, Any] = {}
        self.server_info: Optional[Dict[str, Any]] = None
        self._open_documents: Set[str] = set()

    @property
    def is_ready(self) -> bool:
        return self.state == HandshakeState.READY

    async def initialize(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """发送 initialize 请求并等待服务器能力

        失败（错误响应、超时、连接关闭）时状态回到 UNINITIALIZED 并抛出原错误。

        Returns:
            服务器能力
        """
        if self.state != HandshakeState.UNINITIALIZED:
            raise ProtocolStateError(
                f"initialize 只能在 UNINITIALIZED 状态发送，当前状态: {self.state.value}"
            )

        PrettyOutput.print("Initializing LSP server...", OutputType.PROGRESS)
        self.state = HandshakeState.INITIALIZING
        params = {
            "processId": self.process_id,
            "rootUri": self.root_uri,
            "capabilities": CLIENT_CAPABILITIES,
            "clientInfo": {"name": "drillsp"},
            "workspaceFolders": [
                {"uri": self.root_uri, "name": os.path.basename(self.root_uri.rstrip("/"))}
            ],
        }
        try:
            result = await self.connection.call("initialize", params, timeout=timeout)
        except BaseException:
            self.state = HandshakeState.UNINITIALIZED
            raise

        result = result if isinstance(result, dict) else {}
        self.server_capabilities = result.get("capabilities") or {}
        self.server_info = result.get("serverInfo")
        PrettyOutput.print("Got initialize response with capabilities", OutputType.INFO)
        return self.server_capabilities

    async def initialized(self) -> None:
        """发送 initialized 通知并进入 READY 状态"""
        if self.state != HandshakeState.INITIALIZING:
            raise ProtocolStateError(
                f"initialized 必须在 initialize 成功之后发送，当前状态: {self.state.value}"
            )
        # 部分服务器会拒绝缺少 params 的 initialized，必须传空对象
        try:
            await self.connection.notify("initialized", {})
        except BaseException:
            self.state = HandshakeState.UNINITIALIZED
            raise
        self.state = HandshakeState.READY

    async def start(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """完成整个握手

        Returns:
            服务器能力
        """
        capabilities = await self.initialize(timeout=timeout)
        await self.initialized()
        return capabilities

    def _require_ready(self, action: str) -> None:
        if self.state != HandshakeState.READY:
            raise ProtocolStateError(
                f"{action} 需要先完成握手，当前状态: {self.state.value}"
            )

    async def open_document(
        self, uri: str, language_id: str, text: str, version: int = 1
    ) -> None:
        """发送 textDocument/didOpen 通知

        Args:
            uri: 文档 URI
            language_id: 语言标识（如 go、python）
            version: 初始版本号
            text: 文档全文
        """
        self._require_ready("textDocument/didOpen")
        PrettyOutput.print(f"Sending didOpen for {uri} ...", OutputType.PROGRESS)
        await self.connection.notify(
            "textDocument/didOpen",
            {
                "textDocument": {
                    "uri": uri,
                    "languageId": language_id,
                    "version": version,
                    "text": text,
                }
            },
        )
        self._open_documents.add(uri)

    def is_open(self, uri: str) -> bool:
        return uri in self._open_documents

    async def document_symbols(
        self, uri: str, timeout: Optional[float] = None
    ) -> List[SymbolInfo]:
        """获取已打开文档的符号

        Returns:
            按声明顺序排列的符号列表
        """
        self._require_ready("textDocument/documentSymbol")
        if uri not in self._open_documents:
            raise ProtocolStateError(f"文档尚未打开: {uri}")

        PrettyOutput.print(f"Fetching document symbols for {uri} ...", OutputType.PROGRESS)
        result = await self.connection.call(
            "textDocument/documentSymbol",
            {"textDocument": {"uri": uri}},
            timeout=timeout,
        )
        return parse_symbols(result)

    async def request(
        self, method: str, params: Any = None, timeout: Optional[float] = None
    ) -> Any:
        """在握手完成后发起任意功能请求"""
        self._require_ready(method)
        return await self.connection.call(method, params, timeout=timeout)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """发送 shutdown 请求与 exit 通知"""
        self._require_ready("shutdown")
        await self.connection.call("shutdown", None, timeout=timeout)
        await self.connection.notify("exit")
        self.state = HandshakeState.UNINITIALIZED
        self._open_documents.clear()
