"""LSP 服务器消息处理模块

处理语言服务器主动发来的请求和通知（如 window/showMessage）。
处理器自己负责错误隔离：单条消息解析失败只记录日志，不会影响分发循环。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional, Union

from drillsp.drillsp_lsp.errors import METHOD_NOT_FOUND, RemoteError
from drillsp.drillsp_utils.output import OutputType, PrettyOutput


class MessageType(IntEnum):
    """window/showMessage 与 window/logMessage 的消息级别"""

    ERROR = 1
    WARNING = 2
    INFO = 3
    LOG = 4
    DEBUG = 5


@dataclass
class ShowMessageParams:
    """window/showMessage 参数

    Attributes:
        type: 消息级别
        message: 消息内容
    """

    type: MessageType
    message: str

    @classmethod
    def from_params(cls, params: Any) -> "ShowMessageParams":
        """解析通知参数

        Raises:
            ValueError: 参数格式错误或消息级别未知
        """
        if not isinstance(params, dict):
            raise ValueError(f"params must be an object, got {type(params).__name__}")
        raw_type = params.get("type")
        message = params.get("message")
        if not isinstance(raw_type, int) or isinstance(raw_type, bool):
            raise ValueError(f"invalid message type: {raw_type!r}")
        if not isinstance(message, str):
            raise ValueError(f"invalid message text: {message!r}")
        try:
            message_type = MessageType(raw_type)
        except ValueError:
            raise ValueError(f"unexpected message type: {raw_type}") from None
        return cls(type=message_type, message=message)


class NotificationHandler(ABC):
    """语言服务器消息处理器接口

    分发循环对每一个对端发起的请求或通知调用 handle()。
    """

    @abstractmethod
    def handle(
        self, method: str, request_id: Optional[Union[int, str]], params: Any
    ) -> Any:
        """处理一条对端消息

        Args:
            method: 方法名
            request_id: 请求 ID，通知为 None
            params: 原始参数

        Returns:
            对请求的响应结果，通知的返回值会被忽略

        Raises:
            RemoteError: 作为错误响应返回给对端
        """


class LoggingNotificationHandler(NotificationHandler):
    """默认处理器：记录服务器消息，并应答常见的服务器请求"""

    _PREFIXES: Dict[MessageType, str] = {
        MessageType.ERROR: "Error",
        MessageType.WARNING: "Warning",
        MessageType.INFO: "Info",
        MessageType.LOG: "Log",
        MessageType.DEBUG: "Debug",
    }

    _OUTPUT_TYPES: Dict[MessageType, OutputType] = {
        MessageType.ERROR: OutputType.ERROR,
        MessageType.WARNING: OutputType.WARNING,
        MessageType.INFO: OutputType.SERVER,
        MessageType.LOG: OutputType.SERVER,
        MessageType.DEBUG: OutputType.DEBUG,
    }

    def handle(
        self, method: str, request_id: Optional[Union[int, str]], params: Any
    ) -> Any:
        if method in ("window/showMessage", "window/logMessage"):
            self._log_message(method, request_id, params)
            return None

        if method == "window/showMessageRequest":
            # 没有交互界面，只记录消息，不选择任何操作
            self._log_message(method, request_id, params)
            return None

        if method in (
            "window/workDoneProgress/create",
            "client/registerCapability",
            "client/unregisterCapability",
        ):
            return None

        if method == "workspace/configuration":
            items = params.get("items", []) if isinstance(params, dict) else []
            return [None for _ in items]

        if request_id is None:
            PrettyOutput.print(f"Server notification {method}", OutputType.DEBUG)
            return None

        PrettyOutput.print(
            f"未处理的服务器请求 {method} (id={request_id})", OutputType.WARNING
        )
        raise RemoteError(METHOD_NOT_FOUND, f"Method not found: {method}")

    def _log_message(
        self, method: str, request_id: Optional[Union[int, str]], params: Any
    ) -> None:
        try:
            show_message = ShowMessageParams.from_params(params)
        except ValueError as e:
            PrettyOutput.print(f"Error parsing message {method}: {e}", OutputType.WARNING)
            return

        prefix = self._PREFIXES[show_message.type]
        id_text = f" {request_id}" if request_id is not None else ""
        PrettyOutput.print(
            f"Server notification {method}{id_text} {prefix}: {show_message.message}",
            self._OUTPUT_TYPES[show_message.type],
            context={"method": method, "request_id": request_id},
        )
