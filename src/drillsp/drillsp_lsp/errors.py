"""LSP 错误类型模块

传输层错误（DecodeError、ConnectionClosedError）对整个连接生效，
调用层错误（RemoteError、RequestCancelledError）只影响单个请求。
"""

from typing import Any, Dict, Optional


# JSON-RPC 预定义错误码
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class LSPError(Exception):
    """drillsp 所有错误的基类"""


class LaunchError(LSPError):
    """语言服务器进程无法启动（找不到可执行文件、没有权限等）"""


class DecodeError(LSPError):
    """收到的消息帧格式错误，连接随之关闭"""


class ConnectionClosedError(LSPError):
    """连接已关闭，未完成的请求和后续请求都会收到该错误"""


class RequestCancelledError(LSPError):
    """请求在收到响应之前超时或被取消"""

    def __init__(self, method: str, request_id: int, timeout: Optional[float] = None):
        self.method = method
        self.request_id = request_id
        self.timeout = timeout
        if timeout is not None:
            message = f"请求 {method} (id={request_id}) 在 {timeout} 秒后超时"
        else:
            message = f"请求 {method} (id={request_id}) 已取消"
        super().__init__(message)


class RemoteError(LSPError):
    """对端针对某个请求返回的 JSON-RPC 错误对象

    Attributes:
        code: 错误码
        message: 错误信息
        data: 附加数据（可选）
    """

    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"[{code}] {message}")

    @classmethod
    def from_error(cls, error: Any) -> "RemoteError":
        """从响应中的 error 字段构造错误"""
        if not isinstance(error, dict):
            return cls(INTERNAL_ERROR, f"Malformed error object: {error!r}")
        code = error.get("code", INTERNAL_ERROR)
        if not isinstance(code, int):
            code = INTERNAL_ERROR
        return cls(code, str(error.get("message", "Unknown error")), error.get("data"))

    def to_error(self) -> Dict[str, Any]:
        """转换为响应中的 error 字段"""
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class ProtocolStateError(LSPError):
    """在握手完成之前发起功能请求等违反调用顺序的错误"""


class UnsupportedStreamOperation(LSPError, NotImplementedError):
    """管道对不支持的套接字操作（关闭单个方向、超时、地址查询）"""
