"""依赖解析模块

- models.py: 依赖标识与作用域
- resolver.py: 模块依赖解析（继承不复制）
- maven.py: 仓库坐标解析（本地仓库 + 远程回退 + POM 传递展开）
- system.py: 平台产物解析（JDK 发现）
"""

from modpac.core.dep.maven import MavenResolver
from modpac.core.dep.models import Depend, DependId, MissingId, RepoId, Scope, Source, SystemId
from modpac.core.dep.resolver import Depends, DependencyResolver
from modpac.core.dep.system import SystemResolver

__all__ = [
    "Depend",
    "DependId",
    "Depends",
    "DependencyResolver",
    "MavenResolver",
    "MissingId",
    "RepoId",
    "Scope",
    "Source",
    "SystemId",
    "SystemResolver",
]
