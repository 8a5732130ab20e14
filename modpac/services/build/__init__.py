"""构建服务模块

- toolchain.py: 编译器与打包命令调用
- builder.py: 按模块构建包
"""

from modpac.services.build.builder import PackageBuilder
from modpac.services.build.toolchain import Toolchain

__all__ = ["PackageBuilder", "Toolchain"]
