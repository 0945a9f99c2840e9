"""LSP 协议模块

该模块提供 LSP（Language Server Protocol）的消息定义和
JSON-RPC 消息编解码功能（Content-Length 头 + UTF-8 JSON 内容）。
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from drillsp.drillsp_lsp.errors import DecodeError


@dataclass
class LSPRequest:
    """LSP 请求数据类（需要对端回复的调用）

    Attributes:
        jsonrpc: JSON-RPC 版本，固定为 "2.0"
        id: 请求 ID
        method: 方法名
        params: 请求参数
    """

    jsonrpc: str
    id: Union[int, str]
    method: str
    params: Optional[Any]


@dataclass
class LSPResponse:
    """LSP 响应数据类

    Attributes:
        jsonrpc: JSON-RPC 版本，固定为 "2.0"
        id: 请求 ID
        result: 响应结果
        error: 错误信息
    """

    jsonrpc: str
    id: Optional[Union[int, str]]
    result: Optional[Any]
    error: Optional[Dict[str, Any]]


@dataclass
class LSPNotification:
    """LSP 通知数据类（单向消息，没有响应）

    Attributes:
        jsonrpc: JSON-RPC 版本，固定为 "2.0"
        method: 方法名
        params: 通知参数
    """

    jsonrpc: str
    method: str
    params: Optional[Any]


LSPMessage = Union[LSPRequest, LSPResponse, LSPNotification]


class LSPMessageCodec:
    """LSP 消息编解码器

    处理 LSP 协议的 JSON-RPC 消息编解码，包括
    Content-Length 头的处理。
    """

    CONTENT_LENGTH_HEADER = "Content-Length"
    CONTENT_TYPE = "application/vscode-jsonrpc; charset=utf-8"
    # 单个消息头部分的最大字节数
    MAX_HEADER_SIZE = 8192

    @staticmethod
    def encode(message: LSPMessage) -> bytes:
        """按消息类型编码

        Args:
            message: 请求、响应或通知

        Returns:
            编码后的字节数据
        """
        if isinstance(message, LSPRequest):
            return LSPMessageCodec.encode_request(message)
        if isinstance(message, LSPResponse):
            return LSPMessageCodec.encode_response(message)
        if isinstance(message, LSPNotification):
            return LSPMessageCodec.encode_notification(message)
        raise TypeError(f"Unsupported message type: {type(message).__name__}")

    @staticmethod
    def encode_request(request: LSPRequest) -> bytes:
        """编码 LSP 请求

        Args:
            request: LSP 请求对象

        Returns:
            编码后的字节数据
        """
        payload: Dict[str, Any] = {
            "jsonrpc": request.jsonrpc,
            "id": request.id,
            "method": request.method,
        }
        if request.params is not None:
            payload["params"] = request.params
        return LSPMessageCodec._encode_content(payload)

    @staticmethod
    def encode_response(response: LSPResponse) -> bytes:
        """编码 LSP 响应

        result 与 error 只会出现其中一个。

        Args:
            response: LSP 响应对象

        Returns:
            编码后的字节数据
        """
        payload: Dict[str, Any] = {"jsonrpc": response.jsonrpc, "id": response.id}
        if response.error is not None:
            payload["error"] = response.error
        else:
            payload["result"] = response.result
        return LSPMessageCodec._encode_content(payload)

    @staticmethod
    def encode_notification(notification: LSPNotification) -> bytes:
        """编码 LSP 通知

        Args:
            notification: LSP 通知对象

        Returns:
            编码后的字节数据
        """
        payload: Dict[str, Any] = {
            "jsonrpc": notification.jsonrpc,
            "method": notification.method,
        }
        if notification.params is not None:
            payload["params"] = notification.params
        return LSPMessageCodec._encode_content(payload)

    @staticmethod
    def _encode_content(payload: Dict[str, Any]) -> bytes:
        """编码消息内容

        Args:
            payload: 消息字典

        Returns:
            包含 Content-Length 头和内容的字节数据
        """
        content_bytes = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        header = (
            f"{LSPMessageCodec.CONTENT_LENGTH_HEADER}: {len(content_bytes)}\r\n"
            f"Content-Type: {LSPMessageCodec.CONTENT_TYPE}\r\n\r\n"
        )
        return header.encode("ascii") + content_bytes

    @staticmethod
    def decode_message(data: bytes) -> LSPMessage:
        """解码一个完整的 LSP 消息帧

        Args:
            data: 接收到的字节数据（头部 + 内容）

        Returns:
            LSP 请求、响应或通知

        Raises:
            DecodeError: 消息格式错误
        """
        # 去除前面可能的空行
        data = data.lstrip(b"\r\n")

        if b"\r\n\r\n" not in data:
            raise DecodeError("Missing header terminator")
        headers, content = data.split(b"\r\n\r\n", 1)
        content_length = LSPMessageCodec._parse_headers(headers.split(b"\r\n"))

        if len(content) != content_length:
            raise DecodeError(
                f"Content-Length mismatch: header says {content_length}, "
                f"got {len(content)} bytes"
            )
        return LSPMessageCodec.parse_content(content)

    @staticmethod
    async def read_message(stream: Any) -> Optional[LSPMessage]:
        """从流中读取一个 LSP 消息

        Args:
            stream: 提供 readline() 与 readexactly() 的异步流

        Returns:
            LSP 消息；如果在两个消息之间遇到 EOF 则返回 None

        Raises:
            DecodeError: 消息格式错误或消息被截断
        """
        header_lines = []
        header_size = 0
        try:
            while True:
                line = await stream.readline()
                if not line:
                    if header_lines:
                        raise DecodeError("Stream closed inside message header")
                    return None
                header_size += len(line)
                if header_size > LSPMessageCodec.MAX_HEADER_SIZE:
                    raise DecodeError("Excessively long LSP header received")
                line = line.rstrip(b"\r\n")
                if not line:
                    if header_lines:
                        break
                    # 跳过消息之间多余的空行
                    continue
                header_lines.append(line)

            content_length = LSPMessageCodec._parse_headers(header_lines)
            content = await stream.readexactly(content_length)
        except asyncio.IncompleteReadError as e:
            raise DecodeError(
                f"Stream closed inside message body: "
                f"expected {e.expected} bytes, got {len(e.partial)}"
            ) from e
        except ValueError as e:
            # StreamReader 在单行超过缓冲区上限时抛出 ValueError
            raise DecodeError(f"Failed to read LSP header: {e}") from e

        return LSPMessageCodec.parse_content(content)

    @staticmethod
    def _parse_headers(header_lines: Any) -> int:
        """解析头部并返回 Content-Length"""
        content_length = None
        for raw_line in header_lines:
            try:
                line = raw_line.decode("ascii")
            except UnicodeDecodeError as e:
                raise DecodeError(f"Non-ASCII LSP header: {raw_line!r}") from e
            if ":" not in line:
                raise DecodeError(f"Malformed LSP header: {line!r}")
            name, value = line.split(":", 1)
            if name.strip().lower() == LSPMessageCodec.CONTENT_LENGTH_HEADER.lower():
                try:
                    content_length = int(value.strip())
                except ValueError as e:
                    raise DecodeError(f"Invalid Content-Length value: {line!r}") from e

        if content_length is None:
            raise DecodeError("Missing Content-Length header")
        if content_length < 0:
            raise DecodeError(f"Negative Content-Length: {content_length}")
        return content_length

    @staticmethod
    def parse_content(content: bytes) -> LSPMessage:
        """解析消息内容（JSON）

        通过字段区分消息类型：同时有 id 和 method 的是对端发起的请求，
        只有 id 的是响应，只有 method 的是通知。

        Raises:
            DecodeError: 内容不是合法的 JSON-RPC 消息
        """
        try:
            message_dict = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(f"Failed to decode LSP message: {e}") from e

        if not isinstance(message_dict, dict):
            raise DecodeError(
                f"LSP message must be a JSON object, got {type(message_dict).__name__}"
            )

        jsonrpc = message_dict.get("jsonrpc", "2.0")
        has_id = "id" in message_dict
        method = message_dict.get("method")

        if method is not None and not isinstance(method, str):
            raise DecodeError(f"Invalid method name: {method!r}")

        if has_id and method is not None:
            return LSPRequest(
                jsonrpc=jsonrpc,
                id=message_dict["id"],
                method=method,
                params=message_dict.get("params"),
            )
        if has_id:
            return LSPResponse(
                jsonrpc=jsonrpc,
                id=message_dict["id"],
                result=message_dict.get("result"),
                error=message_dict.get("error"),
            )
        if method is not None:
            return LSPNotification(
                jsonrpc=jsonrpc,
                method=method,
                params=message_dict.get("params"),
            )
        raise DecodeError("LSP message has neither id nor method")
