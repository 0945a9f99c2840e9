"""双工管道流模块

把子进程的 stdout（读取方向）和 stdin（写入方向）两条独立的管道
组合为一个双工流对象，供 JSON-RPC 连接使用。

管道对并不是真正的套接字：关闭单个方向、读写超时、地址查询等操作
一律直接抛出 UnsupportedStreamOperation。
"""

from typing import Any, Optional

from drillsp.drillsp_lsp.errors import UnsupportedStreamOperation
from drillsp.drillsp_utils.output import OutputType, PrettyOutput


class TracingReader:
    """包装读取端，记录每次读取的字节，不修改返回内容"""

    def __init__(self, reader: Any) -> None:
        self._reader = reader

    def _trace(self, data: bytes) -> bytes:
        PrettyOutput.print(
            f"<-- 读取 {len(data)} 字节: {data!r}",
            OutputType.DEBUG,
            context={"direction": "read", "size": len(data)},
        )
        return data

    async def read(self, n: int = -1) -> bytes:
        return self._trace(await self._reader.read(n))

    async def readline(self) -> bytes:
        return self._trace(await self._reader.readline())

    async def readexactly(self, n: int) -> bytes:
        return self._trace(await self._reader.readexactly(n))

    def at_eof(self) -> bool:
        return self._reader.at_eof()


class TracingWriter:
    """包装写入端，记录每次写入的字节，不修改写入内容"""

    def __init__(self, writer: Any) -> None:
        self._writer = writer

    def write(self, data: bytes) -> None:
        PrettyOutput.print(
            f"--> 写入 {len(data)} 字节: {data!r}",
            OutputType.DEBUG,
            context={"direction": "write", "size": len(data)},
        )
        self._writer.write(data)

    async def drain(self) -> None:
        await self._writer.drain()

    def is_closing(self) -> bool:
        return self._writer.is_closing()


class DuplexPipeStream:
    """由独立的读取端和写入端组成的双工流

    Args:
        reader: 入站字节流（通常是子进程的 stdout）
        writer: 出站字节流（通常是子进程的 stdin）
        trace: 是否记录所有读写的原始字节
    """

    def __init__(self, reader: Any, writer: Any, trace: bool = False) -> None:
        if trace:
            reader = TracingReader(reader)
            writer = TracingWriter(writer)
        self._reader = reader
        self._writer = writer
        self.trace = trace

    async def read(self, n: int = -1) -> bytes:
        return await self._reader.read(n)

    async def readline(self) -> bytes:
        return await self._reader.readline()

    async def readexactly(self, n: int) -> bytes:
        return await self._reader.readexactly(n)

    def at_eof(self) -> bool:
        return self._reader.at_eof()

    async def write(self, data: bytes) -> int:
        """写入数据并等待缓冲区清空

        Returns:
            写入的字节数
        """
        self._writer.write(data)
        await self._writer.drain()
        return len(data)

    def is_closing(self) -> bool:
        return self._writer.is_closing()

    # 以下为套接字才支持的操作
    def close(self) -> None:
        raise UnsupportedStreamOperation(
            "DuplexPipeStream cannot be closed directly, terminate the process instead"
        )

    def set_deadline(self, deadline: Optional[float]) -> None:
        raise UnsupportedStreamOperation("DuplexPipeStream does not support deadlines")

    def set_read_deadline(self, deadline: Optional[float]) -> None:
        raise UnsupportedStreamOperation("DuplexPipeStream does not support deadlines")

    def set_write_deadline(self, deadline: Optional[float]) -> None:
        raise UnsupportedStreamOperation("DuplexPipeStream does not support deadlines")

    @property
    def local_address(self) -> Any:
        raise UnsupportedStreamOperation("DuplexPipeStream has no local address")

    @property
    def remote_address(self) -> Any:
        raise UnsupportedStreamOperation("DuplexPipeStream has no remote address")
