# -*- coding: utf-8 -*-
"""配置管理模块。

该模块提供了获取 drillsp 各种配置设置的函数。
所有配置都从 YAML 配置文件中读取，带有回退默认值。
"""
import os
from typing import Any
from typing import Dict
from typing import cast

# 全局配置存储

GLOBAL_CONFIG_DATA: Dict[str, Any] = {}


def set_global_env_data(env_data: Dict[str, Any]) -> None:
    """设置全局配置数据"""
    global GLOBAL_CONFIG_DATA
    GLOBAL_CONFIG_DATA = dict(env_data)


def set_config(key: str, value: Any) -> None:
    """设置配置"""
    GLOBAL_CONFIG_DATA[key] = value


def get_global_config_data() -> Dict[str, Any]:
    """获取全局配置数据"""
    return GLOBAL_CONFIG_DATA


def get_config_file_path() -> str:
    """
    获取配置文件路径。

    返回:
        str: 优先使用 DRILLSP_CONFIG 环境变量，
             未设置时使用 ~/.drillsp/config.yaml
    """
    return os.path.expanduser(
        os.environ.get("DRILLSP_CONFIG", "~/.drillsp/config.yaml").strip()
    )


def get_pretty_output() -> bool:
    """
    获取是否启用PrettyOutput。

    返回：
        bool: 如果启用PrettyOutput则返回True，默认为True
    """
    import platform

    # Windows系统强制设置为False
    if platform.system() == "Windows":
        return False

    return cast(bool, GLOBAL_CONFIG_DATA.get("pretty_output", True))


def is_print_error_traceback() -> bool:
    """
    获取是否在错误输出时打印回溯调用链。

    返回：
        bool: 如果打印回溯则返回True，默认为False
    """
    return cast(bool, GLOBAL_CONFIG_DATA.get("print_error_traceback", False))


def is_debug_output() -> bool:
    """是否显示 DEBUG 级别的诊断输出，默认为False"""
    return cast(bool, GLOBAL_CONFIG_DATA.get("debug", False))


def is_trace_rpc() -> bool:
    """
    是否记录与语言服务器之间的原始字节流。

    返回：
        bool: 默认为False
    """
    return cast(bool, GLOBAL_CONFIG_DATA.get("trace_rpc", False))


def get_request_timeout() -> float:
    """获取普通请求的超时时间（秒），默认为30"""
    return float(GLOBAL_CONFIG_DATA.get("request_timeout", 30))


def get_initialize_timeout() -> float:
    """获取 initialize 请求的超时时间（秒），默认为30"""
    return float(GLOBAL_CONFIG_DATA.get("initialize_timeout", 30))


def get_shutdown_timeout() -> float:
    """获取关闭语言服务器时的等待时间（秒），默认为5"""
    return float(GLOBAL_CONFIG_DATA.get("shutdown_timeout", 5))
