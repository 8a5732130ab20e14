"""modpac - 模块化运行时的包管理器"""

__version__ = "0.3.0"
