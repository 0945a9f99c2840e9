# -*- coding: utf-8 -*-
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from drillsp.drillsp_utils.config import get_config_file_path, set_global_env_data


def load_config(config_file: Optional[str] = None) -> Dict[str, Any]:
    """加载配置文件并设置为全局配置

    配置文件不存在时使用空配置（即全部默认值）。

    参数:
        config_file: 配置文件路径，为 None 时使用 get_config_file_path()

    返回:
        Dict[str, Any]: 解析后的配置字典

    异常:
        ValueError: 配置文件不是合法的 YAML 映射
    """
    config_file_path = Path(
        config_file if config_file is not None else get_config_file_path()
    )

    config_data: Dict[str, Any] = {}
    if config_file_path.exists():
        _, config_data = _load_config_file(str(config_file_path))

    set_global_env_data(config_data)
    return config_data


def _load_config_file(config_file: str) -> Tuple[str, Dict[str, Any]]:
    """读取并解析YAML格式的配置文件

    参数:
        config_file: 配置文件路径

    返回:
        Tuple[str, dict]: (文件原始内容, 解析后的配置字典)
    """
    with open(config_file, "r", encoding="utf-8") as f:
        content = f.read()
    try:
        config_data = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"配置文件解析失败 {config_file}: {e}") from e
    if not isinstance(config_data, dict):
        raise ValueError(f"配置文件格式错误 {config_file}: 顶层必须是映射")
    return content, config_data
