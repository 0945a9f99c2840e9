"""配置读取模块

该模块提供 LSP 配置读取功能，从 ~/.drillsp/config.yaml（或 DRILLSP_CONFIG
指定的文件）的 lsp.languages 节中读取各种语言的 LSP 服务器配置。

配置复用 drillsp_utils.config 的全局配置数据。
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from drillsp.drillsp_utils.config import get_global_config_data


@dataclass
class LanguageConfig:
    """语言配置数据类

    Attributes:
        command: LSP 服务器可执行文件命令
        args: 启动参数列表
        file_extensions: 支持的文件扩展名列表
        language_id: didOpen 中使用的语言标识，为空时使用语言名
        env: 追加给服务器进程的环境变量
    """

    command: str
    args: list[str]
    file_extensions: list[str]
    language_id: str = ""
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class LSPConfig:
    """LSP 配置数据类

    Attributes:
        languages: 语言配置字典，key 为语言名，value 为 LanguageConfig
    """

    languages: Dict[str, LanguageConfig]


# 默认语言配置
DEFAULT_LANGUAGES: Dict[str, LanguageConfig] = {
    "go": LanguageConfig(
        command="gopls",
        args=["-logfile=./gopls.log", "-rpc.trace", "-vv", "-mode=stdio"],
        file_extensions=[".go"],
    ),
    "python": LanguageConfig(
        command="pylsp",
        args=["--check-parent-process", "--log-file", "/tmp/pylsp.log", "-v"],
        file_extensions=[".py", ".pyi"],
    ),
    "rust": LanguageConfig(
        command="rust-analyzer",
        args=[],
        file_extensions=[".rs"],
    ),
    "c": LanguageConfig(
        command="clangd",
        args=[],
        file_extensions=[".c", ".h"],
    ),
    "cpp": LanguageConfig(
        command="clangd",
        args=[],
        file_extensions=[".cpp", ".hpp", ".cc", ".cxx", ".hh"],
    ),
    "typescript": LanguageConfig(
        command="typescript-language-server",
        args=["--stdio"],
        file_extensions=[".ts", ".tsx"],
    ),
    "javascript": LanguageConfig(
        command="typescript-language-server",
        args=["--stdio"],
        file_extensions=[".js", ".jsx", ".mjs"],
    ),
}


class LSPConfigReader:
    """LSP 配置读取器

    从全局配置数据中读取 LSP 配置，并提供
    语言检测和配置查询功能。
    """

    def load_config(self) -> LSPConfig:
        """加载 LSP 配置

        默认配置和用户配置合并，用户配置优先。

        Returns:
            LSPConfig 对象

        Raises:
            ValueError: 配置格式错误
        """
        # 从默认配置开始
        languages: Dict[str, LanguageConfig] = dict(DEFAULT_LANGUAGES)

        # 加载用户配置并覆盖默认配置
        config_data = get_global_config_data()
        lsp_data = config_data.get("lsp") or {}
        if not isinstance(lsp_data, dict):
            raise ValueError("lsp 配置格式错误: 必须是映射")
        languages_data = lsp_data.get("languages") or {}
        if not isinstance(languages_data, dict):
            raise ValueError("lsp.languages 配置格式错误: 必须是映射")

        for lang_name, lang_data in languages_data.items():
            if not isinstance(lang_data, dict):
                raise ValueError(f"语言配置格式错误: {lang_name}")

            # 验证必需字段
            for required in ("command", "args", "file_extensions"):
                if required not in lang_data:
                    raise ValueError(f"语言 {lang_name} 缺少必需字段: {required}")

            if not isinstance(lang_data["args"], list):
                raise ValueError(f"语言 {lang_name} 的 args 必须是列表")
            if not isinstance(lang_data["file_extensions"], list):
                raise ValueError(f"语言 {lang_name} 的 file_extensions 必须是列表")

            # 用户配置覆盖默认配置
            languages[lang_name] = LanguageConfig(
                command=str(lang_data["command"]),
                args=[str(arg) for arg in lang_data["args"]],
                file_extensions=[str(ext) for ext in lang_data["file_extensions"]],
                language_id=str(lang_data.get("language_id", "")),
                env={str(k): str(v) for k, v in (lang_data.get("env") or {}).items()},
            )

        return LSPConfig(languages=languages)

    def get_language_config(self, language: str) -> Optional[LanguageConfig]:
        """获取指定语言的配置

        Args:
            language: 语言名称

        Returns:
            LanguageConfig 对象，如果不存在则返回 None
        """
        config = self.load_config()
        return config.languages.get(language)

    def detect_language(self, file_path: str) -> Optional[str]:
        """根据文件扩展名检测语言

        Args:
            file_path: 文件路径

        Returns:
            语言名称，如果无法检测则返回 None
        """
        config = self.load_config()
        ext = Path(file_path).suffix.lower()

        for lang_name, lang_config in config.languages.items():
            if ext in lang_config.file_extensions:
                return lang_name

        return None

    def get_language_id(self, language: str) -> str:
        """获取 didOpen 使用的语言标识"""
        lang_config = self.get_language_config(language)
        if lang_config is not None and lang_config.language_id:
            return lang_config.language_id
        return language
