"""
drillsp工具模块
该模块提供了drillsp中使用的通用实用函数和类。
该模块组织为以下几个子模块：
- config: 配置管理
- globals: 全局共享对象（控制台）
- output: 输出格式化
- utils: 配置文件加载
"""
