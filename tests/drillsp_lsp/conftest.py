# -*- coding: utf-8 -*-
"""drillsp_lsp 测试共用的内存对端"""
import asyncio
import json
from typing import Any, Dict, Optional

import pytest

from drillsp.drillsp_lsp.protocol import LSPMessage, LSPMessageCodec


def frame(payload: Any) -> bytes:
    """把任意 JSON 值编码为一个 Content-Length 帧"""
    body = json.dumps(payload).encode("utf-8")
    return b"Content-Length: %d\r\n\r\n" % len(body) + body


class FakePeer:
    """内存中的语言服务器对端

    连接从 inbound 读取测试写入的帧，连接写出的字节进入 outbound，
    测试通过 receive() 逐个取出解码后的消息。
    必须在事件循环中创建。
    """

    def __init__(self) -> None:
        self.inbound = asyncio.StreamReader()
        self.outbound = asyncio.StreamReader()
        self.write_count = 0
        self.fail_writes = False

    # 连接使用的流接口
    async def readline(self) -> bytes:
        return await self.inbound.readline()

    async def readexactly(self, n: int) -> bytes:
        return await self.inbound.readexactly(n)

    async def write(self, data: bytes) -> int:
        if self.fail_writes:
            raise BrokenPipeError("pipe closed")
        self.write_count += 1
        self.outbound.feed_data(data)
        return len(data)

    # 测试使用的接口
    def send(self, payload: Dict[str, Any]) -> None:
        self.inbound.feed_data(frame(payload))

    def send_raw(self, data: bytes) -> None:
        self.inbound.feed_data(data)

    def close(self) -> None:
        self.inbound.feed_eof()

    async def receive(self, timeout: float = 2.0) -> Optional[LSPMessage]:
        return await asyncio.wait_for(
            LSPMessageCodec.read_message(self.outbound), timeout=timeout
        )


@pytest.fixture
def make_peer():
    """返回 FakePeer 类，在异步测试中调用以创建对端"""
    return FakePeer


@pytest.fixture
def make_frame():
    """返回帧编码函数"""
    return frame
