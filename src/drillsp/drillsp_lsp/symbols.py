"""文档符号模块

解析 textDocument/documentSymbol 的响应。服务器可能返回扁平的
SymbolInformation[]，也可能返回带 children 的 DocumentSymbol[]，
两种形式都会按声明顺序（深度优先）展开为 SymbolInfo 列表。
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, List, Optional


class SymbolKind(IntEnum):
    """LSP SymbolKind"""

    FILE = 1
    MODULE = 2
    NAMESPACE = 3
    PACKAGE = 4
    CLASS = 5
    METHOD = 6
    PROPERTY = 7
    FIELD = 8
    CONSTRUCTOR = 9
    ENUM = 10
    INTERFACE = 11
    FUNCTION = 12
    VARIABLE = 13
    CONSTANT = 14
    STRING = 15
    NUMBER = 16
    BOOLEAN = 17
    ARRAY = 18
    OBJECT = 19
    KEY = 20
    NULL = 21
    ENUM_MEMBER = 22
    STRUCT = 23
    EVENT = 24
    OPERATOR = 25
    TYPE_PARAMETER = 26


@dataclass
class SymbolInfo:
    """符号信息数据类

    Attributes:
        name: 符号名称
        kind: 符号类型，服务器返回未知类型时为 None
        line: 行号（0-based）
        column: 列号（0-based）
        detail: 描述信息（如函数签名）
        container: 所在的父符号名称
    """

    name: str
    kind: Optional[SymbolKind]
    line: int
    column: int
    detail: Optional[str] = None
    container: Optional[str] = None

    @property
    def kind_name(self) -> str:
        """符号类型名称（如 function、class）"""
        if self.kind is None:
            return "unknown"
        words = self.kind.name.lower().split("_")
        return words[0] + "".join(word.title() for word in words[1:])

    @property
    def is_function(self) -> bool:
        return self.kind == SymbolKind.FUNCTION


def parse_symbols(result: Any) -> List[SymbolInfo]:
    """解析 documentSymbol 响应结果

    Args:
        result: documentSymbol 响应结果

    Returns:
        按声明顺序排列的符号信息列表
    """
    symbols: List[SymbolInfo] = []

    if not isinstance(result, list):
        return symbols

    def _parse_symbol_item(item: Any, parent: Optional[str]) -> None:
        if not isinstance(item, dict):
            return

        name = item.get("name")
        if not isinstance(name, str):
            return

        kind_value = item.get("kind")
        try:
            kind: Optional[SymbolKind] = SymbolKind(kind_value)
        except ValueError:
            kind = None

        # 位置信息可能在 location.range（SymbolInformation）或 selectionRange/range（DocumentSymbol）
        location = item.get("location")
        if not isinstance(location, dict):
            location = {}
        range_info = (
            location.get("range")
            or item.get("selectionRange")
            or item.get("range")
            or {}
        )
        start = range_info.get("start") or {}

        symbols.append(
            SymbolInfo(
                name=name,
                kind=kind,
                line=start.get("line", 0),
                column=start.get("character", 0),
                detail=item.get("detail"),
                container=item.get("containerName", parent),
            )
        )

        # 递归处理子符号
        children = item.get("children")
        if isinstance(children, list):
            for child in children:
                _parse_symbol_item(child, name)

    for item in result:
        _parse_symbol_item(item, None)

    return symbols
