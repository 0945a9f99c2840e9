# -*- coding: utf-8 -*-
"""
输出格式化模块
该模块为 drillsp 提供诊断信息的格式化和显示工具。
包含：
- 用于分类不同输出类型的OutputType枚举
- 输出事件与可插拔的输出后端（Sink）
- 用于格式化和显示样式化输出的PrettyOutput类

所有诊断输出都写入 stderr，stdout 只保留命令的结果。
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from rich.style import Style as RichStyle
from rich.text import Text

from drillsp.drillsp_utils.config import (
    get_pretty_output,
    is_debug_output,
    is_print_error_traceback,
)
from drillsp.drillsp_utils.globals import console


class OutputType(Enum):
    """
    输出类型枚举，用于分类和样式化不同类型的消息。

    属性：
        ERROR: 错误信息
        WARNING: 警告信息
        INFO: 系统提示
        PROGRESS: 执行进度
        SUCCESS: 成功信息
        DEBUG: 调试信息（含原始字节跟踪）
        SERVER: 语言服务器主动发来的消息
    """

    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    PROGRESS = "PROGRESS"
    SUCCESS = "SUCCESS"
    DEBUG = "DEBUG"
    SERVER = "SERVER"


@dataclass
class OutputEvent:
    """
    输出事件的通用结构，供不同输出后端（Sink）消费。
    - text: 文本内容
    - output_type: 输出类型
    - timestamp: 是否显示时间戳
    - traceback: 是否显示异常堆栈
    - context: 额外上下文（如来源方法名、请求 ID）
    """

    text: str
    output_type: OutputType
    timestamp: bool = True
    traceback: bool = False
    context: Optional[Dict[str, Any]] = None


class OutputSink(ABC):
    """输出后端抽象接口，不同前端（控制台/日志/测试）实现该接口以消费输出事件。"""

    @abstractmethod
    def emit(self, event: OutputEvent) -> None:  # pragma: no cover - 抽象方法
        raise NotImplementedError


class ConsoleOutputSink(OutputSink):
    """
    默认控制台输出实现，每个事件输出为一行。
    """

    _header_styles = {
        OutputType.ERROR: RichStyle(color="red", bold=True),
        OutputType.WARNING: RichStyle(color="yellow", bold=True),
        OutputType.INFO: RichStyle(color="bright_cyan"),
        OutputType.PROGRESS: RichStyle(color="white"),
        OutputType.SUCCESS: RichStyle(color="bright_green", bold=True),
        OutputType.DEBUG: RichStyle(color="grey58", dim=True),
        OutputType.SERVER: RichStyle(color="cyan"),
    }

    def emit(self, event: OutputEvent) -> None:
        if event.output_type == OutputType.DEBUG and not is_debug_output():
            return

        header = PrettyOutput._format(event.output_type, event.timestamp)
        if event.context and event.context.get("auto"):
            # auto_print 的文本自带图标，不再添加输出头
            header = ""
        if get_pretty_output():
            line = Text(header, style=self._header_styles[event.output_type])
            if header:
                line.append(" ")
            line.append(event.text)
            console.print(line, soft_wrap=True)
        else:
            console.print(
                f"{header} {event.text}".lstrip(),
                markup=False,
                highlight=False,
                soft_wrap=True,
            )

        if event.traceback or (
            event.output_type == OutputType.ERROR and is_print_error_traceback()
        ):
            try:
                console.print_exception()
            except Exception as e:
                console.print(f"Error: {e}")


# 模块级输出分发器（默认注册控制台后端）
_output_sinks: List[OutputSink] = [ConsoleOutputSink()]


def emit_output(event: OutputEvent) -> None:
    """向所有已注册的输出后端广播事件。"""
    for sink in list(_output_sinks):
        try:
            sink.emit(event)
        except Exception as e:
            # 后端故障不影响其他后端
            console.print(
                f"[输出后端错误] {sink.__class__.__name__}: {e}", markup=False
            )


class PrettyOutput:
    """
    使用rich库格式化和显示诊断输出的类。

    调用方只需要给出文本和输出类型，具体渲染由已注册的输出后端决定。
    """

    # 不同输出类型的图标
    _ICONS = {
        OutputType.ERROR: "❌",
        OutputType.WARNING: "⚠️",
        OutputType.INFO: "ℹ️",
        OutputType.PROGRESS: "⏳",
        OutputType.SUCCESS: "✅",
        OutputType.DEBUG: "🔍",
        OutputType.SERVER: "📨",
    }

    @staticmethod
    def _format(output_type: OutputType, timestamp: bool = True) -> str:
        """
        使用时间戳和图标格式化输出头。

        参数：
            output_type: 输出类型
            timestamp: 是否包含时间戳

        返回：
            str: 格式化后的输出头
        """
        icon = PrettyOutput._ICONS.get(output_type, "")
        formatted = f"{icon} "
        if timestamp:
            formatted += f"[{datetime.now().strftime('%H:%M:%S')}]"
        formatted += f"[{output_type.value}]"
        return formatted

    @staticmethod
    def print(
        text: str,
        output_type: OutputType,
        timestamp: bool = True,
        traceback: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        打印格式化输出（事件 + Sink 机制）。
        """
        event = OutputEvent(
            text=text,
            output_type=output_type,
            timestamp=timestamp,
            traceback=traceback,
            context=context,
        )
        emit_output(event)

    @staticmethod
    def auto_print(text: str, timestamp: bool = False) -> None:
        """根据文本前缀的图标自动选择输出类型并打印。

        Args:
            text: 以 ❌/⚠️/✅ 等图标开头的面向用户的消息
            timestamp: 是否显示时间戳
        """
        output_type = OutputType.INFO
        for candidate, icon in PrettyOutput._ICONS.items():
            if icon and text.startswith(icon):
                output_type = candidate
                break
        PrettyOutput.print(
            text, output_type, timestamp=timestamp, context={"auto": True}
        )

    # Sink管理（为外部注册自定义后端预留）
    @staticmethod
    def add_sink(sink: OutputSink) -> None:
        """注册一个新的输出后端。"""
        _output_sinks.append(sink)

    @staticmethod
    def remove_sink(sink: OutputSink) -> None:
        """移除一个已注册的输出后端。"""
        if sink in _output_sinks:
            _output_sinks.remove(sink)

    @staticmethod
    def clear_sinks(keep_default: bool = True) -> None:
        """清空已注册的输出后端；可选择保留默认控制台后端。"""
        if keep_default:
            globals()["_output_sinks"] = [
                s for s in _output_sinks if isinstance(s, ConsoleOutputSink)
            ]
        else:
            _output_sinks.clear()

    @staticmethod
    def get_sinks() -> List[OutputSink]:
        """获取当前已注册的输出后端列表（副本）。"""
        return list(_output_sinks)
