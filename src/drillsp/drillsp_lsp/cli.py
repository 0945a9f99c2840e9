"""CLI 接口模块

该模块提供 drillsp 命令行工具：启动语言服务器，完成握手，
打开目标文件并列出其中所有函数的名称（每行一个，按声明顺序）。
"""

import asyncio
from pathlib import Path
from typing import List

import typer

from drillsp.drillsp_lsp.client import LSPClient
from drillsp.drillsp_lsp.config import LSPConfigReader
from drillsp.drillsp_lsp.errors import LSPError
from drillsp.drillsp_lsp.symbols import SymbolInfo
from drillsp.drillsp_utils.config import is_trace_rpc
from drillsp.drillsp_utils.output import PrettyOutput
from drillsp.drillsp_utils.utils import load_config

app = typer.Typer(
    help="drillsp - 通过语言服务器列出文件中的函数",
    add_completion=False,
)


async def fetch_document_symbols(file_path: str) -> List[SymbolInfo]:
    """获取文件的文档符号

    根据扩展名选择语言服务器，以文件所在目录作为工作区根目录。

    Args:
        file_path: 目标文件路径

    Returns:
        符号信息列表

    Raises:
        ValueError: 无法检测语言或配置错误
        OSError: 文件无法读取
        LSPError: 启动、握手或查询失败
    """
    config_reader = LSPConfigReader()
    language = config_reader.detect_language(file_path)
    if language is None:
        raise ValueError(f"无法检测文件语言: {file_path}")

    lang_config = config_reader.get_language_config(language)
    if lang_config is None:
        raise ValueError(f"未找到语言 '{language}' 的配置")

    path = Path(file_path).resolve()
    text = path.read_text(encoding="utf-8")

    async with LSPClient(
        command=lang_config.command,
        args=lang_config.args,
        root_path=str(path.parent),
        env=lang_config.env,
        trace=is_trace_rpc(),
    ) as client:
        return await client.document_symbols(
            str(path), text, config_reader.get_language_id(language)
        )


@app.command()
def functions_command(
    file_path: Path = typer.Argument(..., help="要分析的文件"),
) -> None:
    """列出文件中所有函数的名称"""
    try:
        load_config()
        symbols = asyncio.run(fetch_document_symbols(str(file_path)))
    except (LSPError, OSError, ValueError) as e:
        PrettyOutput.auto_print(f"❌ 错误: {e}")
        raise typer.Exit(code=1)

    for symbol in symbols:
        if symbol.is_function:
            typer.echo(symbol.name)


def main() -> None:
    """主入口函数"""
    app()


if __name__ == "__main__":
    main()
