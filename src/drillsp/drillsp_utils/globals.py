# -*- coding: utf-8 -*-
"""
全局状态模块

该模块维护 drillsp 进程内共享的对象：
- 使用自定义主题的 rich 控制台（输出到 stderr，stdout 留给命令结果）
"""
import colorama
from rich.console import Console
from rich.theme import Theme

# 初始化colorama以支持跨平台的彩色文本
colorama.init()

# 使用自定义主题配置rich控制台
custom_theme = Theme(
    {
        "INFO": "yellow",
        "WARNING": "yellow",
        "ERROR": "red",
        "SUCCESS": "green",
        "PROGRESS": "white",
        "DEBUG": "blue",
        "SERVER": "cyan",
    }
)
console = Console(theme=custom_theme, stderr=True)
