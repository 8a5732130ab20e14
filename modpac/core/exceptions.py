"""统一异常体系

所有业务异常继承 ModpacError，CLI 层据此输出诊断并以非零状态退出。
解析阶段的缺失依赖只收集不抛出，构建阶段才升级为 MissingDependencyError。
"""

from __future__ import annotations

from typing import Any


class ModpacError(Exception):
    """包管理器基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(ModpacError):
    """清单行或依赖 URI 格式错误"""

    code = "CONFIG_ERROR"


class MissingDependencyError(ModpacError):
    """声明的依赖无法解析为产物"""

    code = "MISSING_DEPENDENCY"

    def __init__(self, message: str, missing: list[Any] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class CyclicDependencyError(ModpacError):
    """模块间或包间不存在合法拓扑序"""

    code = "CYCLIC_DEPENDENCY"

    def __init__(self, message: str, remaining: list[str] | None = None) -> None:
        super().__init__(message)
        self.remaining = remaining or []


class LoadError(ModpacError):
    """符号在模块的整条委托链中都找不到"""

    code = "LOAD_ERROR"

    def __init__(self, module: Any, symbol: str) -> None:
        super().__init__(f"{module} 缺少依赖: {symbol}")
        self.module = module
        self.symbol = symbol


class BuildFailure(ModpacError):
    """编译工具链或打包步骤返回非零"""

    code = "BUILD_FAILURE"


class ScheduleFailure(BuildFailure):
    """并行构建中一个或多个包失败，failures 为 (消息, 异常) 列表"""

    code = "SCHEDULE_FAILURE"

    def __init__(self, failures: list[tuple[str, BaseException]]) -> None:
        super().__init__(f"{len(failures)} 个包构建失败")
        self.failures = failures


class FetchFailure(ModpacError):
    """版本控制操作或远程下载失败"""

    code = "FETCH_FAILURE"


class InstallFailure(ModpacError):
    """递归安装过程中的失败，附带正在处理的包"""

    code = "INSTALL_FAILURE"

    def __init__(self, message: str, package: Any = None) -> None:
        super().__init__(message)
        self.package = package


class UpgradeFailure(InstallFailure):
    """递归升级过程中的失败，附带正在处理的包"""

    code = "UPGRADE_FAILURE"


class UnknownPackageError(ModpacError):
    """按名称或模块引用找不到已安装的包/模块"""

    code = "UNKNOWN_PACKAGE"
