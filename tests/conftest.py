# -*- coding: utf-8 -*-
"""pytest 配置文件"""
import sys
import os
from typing import List

import pytest

# 将项目根目录添加到 Python 路径
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from drillsp.drillsp_utils.config import set_global_env_data  # noqa: E402
from drillsp.drillsp_utils.output import (  # noqa: E402
    OutputEvent,
    OutputSink,
    PrettyOutput,
)


class RecordingSink(OutputSink):
    """记录所有输出事件的后端，供测试断言日志内容"""

    def __init__(self) -> None:
        self.events: List[OutputEvent] = []

    def emit(self, event: OutputEvent) -> None:
        self.events.append(event)

    def texts(self, output_type=None) -> List[str]:
        return [
            e.text
            for e in self.events
            if output_type is None or e.output_type == output_type
        ]


@pytest.fixture(scope="function")
def temp_dir(tmp_path):
    """临时目录 fixture，每个测试函数都会获得一个新的临时目录"""
    return tmp_path


@pytest.fixture
def output_records():
    """注册一个记录输出事件的后端，测试结束后移除"""
    sink = RecordingSink()
    PrettyOutput.add_sink(sink)
    yield sink
    PrettyOutput.remove_sink(sink)


@pytest.fixture(autouse=True)
def reset_globals(monkeypatch):
    """自动重置全局状态，防止测试之间的干扰"""
    monkeypatch.delenv("DRILLSP_CONFIG", raising=False)
    set_global_env_data({})

    yield

    # 测试后清理全局配置与额外注册的输出后端
    set_global_env_data({})
    PrettyOutput.clear_sinks(keep_default=True)
