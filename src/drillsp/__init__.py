"""drillsp - 通过 stdio 驱动语言服务器的 JSON-RPC 客户端"""

__version__ = "0.1.0"
