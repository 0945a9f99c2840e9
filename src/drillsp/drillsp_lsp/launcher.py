"""语言服务器进程启动模块

启动语言服务器子进程，把 stdin/stdout 组合为双工流交给 JSON-RPC 连接，
并在后台：
- 持续把子进程的 stderr 转发到父进程的 stderr
- 等待子进程退出并记录退出状态（仅用于诊断，不影响调用方）
"""

import asyncio
import codecs
import os
import sys
from typing import Dict, List, Optional, Set

from drillsp.drillsp_lsp.errors import LaunchError
from drillsp.drillsp_lsp.stream import DuplexPipeStream
from drillsp.drillsp_utils.output import OutputType, PrettyOutput


class ServerProcess:
    """已启动的语言服务器进程

    Attributes:
        command: 可执行文件
        args: 启动参数
        process: asyncio 子进程对象
        stream: stdout/stdin 组成的双工流
        returncode: 退出码，由退出监视任务写入一次
    """

    def __init__(
        self,
        command: str,
        args: List[str],
        process: asyncio.subprocess.Process,
        trace: bool = False,
    ) -> None:
        if process.stdin is None or process.stdout is None:
            raise LaunchError(f"LSP server '{command}' has no stdin/stdout pipes")

        self.command = command
        self.args = args
        self.process = process
        self.stream = DuplexPipeStream(process.stdout, process.stdin, trace=trace)
        self.returncode: Optional[int] = None
        self._tasks: Set[asyncio.Task] = set()

        self._spawn(self._forward_stderr(), "lsp_stderr_forwarder")
        self._exit_task = self._spawn(self._watch_exit(), "lsp_exit_monitor")

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def command_line(self) -> str:
        return " ".join([self.command] + self.args)

    def is_alive(self) -> bool:
        """检查进程是否仍在运行"""
        return self.returncode is None and self.process.returncode is None

    async def _forward_stderr(self) -> None:
        """把子进程的 stderr 原样转发到父进程的 stderr"""
        stderr = self.process.stderr
        if stderr is None:
            return
        # 多字节字符可能跨越两次读取，整个流共用一个增量解码器
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = await stderr.read(4096)
                if not chunk:
                    break
                sys.stderr.write(decoder.decode(chunk))
                sys.stderr.flush()
            tail = decoder.decode(b"", final=True)
            if tail:
                sys.stderr.write(tail)
                sys.stderr.flush()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            PrettyOutput.print(f"转发语言服务器 stderr 失败: {e}", OutputType.WARNING)

    async def _watch_exit(self) -> None:
        """等待子进程退出并记录退出状态"""
        try:
            returncode = await self.process.wait()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            PrettyOutput.print(f"等待语言服务器退出失败: {e}", OutputType.WARNING)
            return

        self.returncode = returncode
        if returncode == 0:
            PrettyOutput.print(f"语言服务器 {self.command} 已退出", OutputType.INFO)
        elif returncode < 0:
            PrettyOutput.print(
                f"语言服务器 {self.command} 被信号 {-returncode} 终止",
                OutputType.WARNING,
            )
        else:
            PrettyOutput.print(
                f"语言服务器 {self.command} 异常退出，退出码: {returncode}",
                OutputType.WARNING,
            )

    async def wait(self) -> Optional[int]:
        """等待进程退出并返回退出码"""
        await asyncio.shield(self._exit_task)
        return self.returncode

    async def terminate(self, timeout: float = 5.0) -> Optional[int]:
        """关闭语言服务器进程

        先关闭 stdin 让服务器自行退出，超时后依次 terminate、kill。

        Args:
            timeout: 每个阶段的等待时间（秒）

        Returns:
            进程退出码
        """
        if self.process.returncode is None:
            stdin = self.process.stdin
            if stdin is not None and not stdin.is_closing():
                stdin.close()
            try:
                await asyncio.wait_for(self.process.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                try:
                    self.process.terminate()
                    await asyncio.wait_for(self.process.wait(), timeout=timeout)
                except ProcessLookupError:
                    pass
                except asyncio.TimeoutError:
                    PrettyOutput.print(
                        f"语言服务器 {self.command} 未响应 terminate，强制结束",
                        OutputType.WARNING,
                    )
                    try:
                        self.process.kill()
                    except ProcessLookupError:
                        pass
                    await self.process.wait()

        # 等待后台任务读完剩余的 stderr 并记录退出状态
        if self._tasks:
            await asyncio.wait(list(self._tasks), timeout=timeout)
        return self.process.returncode


async def launch_server(
    command: str,
    args: List[str],
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    trace: bool = False,
) -> ServerProcess:
    """启动语言服务器进程

    Args:
        command: 可执行文件
        args: 启动参数列表
        env: 需要追加或覆盖的环境变量，其余环境变量继承自父进程
        cwd: 工作目录
        trace: 是否记录原始字节流

    Returns:
        ServerProcess 对象

    Raises:
        LaunchError: 进程无法启动
    """
    process_env = os.environ.copy()
    if env:
        process_env.update(env)

    PrettyOutput.print(
        f"启动语言服务器: {' '.join([command] + args)}", OutputType.PROGRESS
    )
    try:
        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=process_env,
            cwd=cwd,
        )
    except FileNotFoundError as e:
        raise LaunchError(
            f"LSP server '{command}' not found. "
            f"To install Go LSP server: go install golang.org/x/tools/gopls@latest"
        ) from e
    except PermissionError as e:
        raise LaunchError(f"Permission denied when starting LSP server '{command}'") from e
    except OSError as e:
        raise LaunchError(f"LSP server '{command}' failed to start: {e}") from e

    server = ServerProcess(command, args, process, trace=trace)
    PrettyOutput.print(f"语言服务器已启动 (pid={server.pid})", OutputType.SUCCESS)
    return server
