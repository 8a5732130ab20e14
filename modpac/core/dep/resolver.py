"""依赖解析器：把模块声明的依赖解析为去重后的依赖集

由于运行时按模块隔离加载，一个模块必须原样继承其模块依赖的二进制依赖；
这与 Maven 允许覆盖传递依赖版本不同。因此模块声明的依赖（仓库坐标、平台产物、
其他模块）被处理为:
  - binary_deps:  本模块私有、且不在任何模块依赖传递闭包中的二进制依赖
  - shared_deps:  进程内单例的共享依赖（平台产物或显式标记的仓库坐标）
  - module_deps:  模块依赖各自的解析结果
  - missing:      无法解析的依赖（收集而不中断，便于一次性报告）

版本冲突不做协调：先解析到的、继承来的优先。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, Union

if TYPE_CHECKING:
    from modpac.core.package import Module

from modpac.core.dep.models import (
    DependId,
    MissingId,
    RepoId,
    Scope,
    Source,
    SystemId,
)
from modpac.core.exceptions import CyclicDependencyError, MissingDependencyError

logger = logging.getLogger(__name__)

FlatId = Union[DependId, MissingId]


class RepoResolver(Protocol):
    """仓库坐标解析器：批量解析，找不到的坐标映射为 None"""

    def resolve(self, ids: list[RepoId]) -> dict[RepoId, Path | None]: ...


class PlatformResolver(Protocol):
    """平台产物解析器：逐个解析，失败抛 MissingDependencyError"""

    def resolve(self, id: SystemId) -> Path: ...


class ModuleIndex(Protocol):
    """按源码引用查找模块（由 PackageRepository 实现）"""

    def module_by_source(self, source: Source) -> Module | None: ...

    def is_shared(self, repo_id: RepoId) -> bool: ...


@dataclass
class Depends:
    """单个模块在某一作用域下的解析结果"""

    module: Module
    scope: Scope
    # 保持插入顺序：顺序决定加载优先级
    binary_deps: dict[Path, DependId] = field(default_factory=dict)
    shared_deps: dict[Path, DependId] = field(default_factory=dict)
    # 因已从模块依赖继承而省略的直接依赖，仅用于展示
    filtered_deps: dict[Path, DependId] = field(default_factory=dict)
    module_deps: list[Depends] = field(default_factory=list)
    missing: list[MissingId] = field(default_factory=list)

    def accum_binary_deps(self, into: set[Path]) -> set[Path]:
        """把传递闭包中的全部二进制依赖路径并入 into"""
        into.update(self.binary_deps)
        for dep in self.module_deps:
            dep.accum_binary_deps(into)
        return into

    def classpath(self) -> list[Path]:
        """自身产物 + 二进制 + 共享 + 模块依赖的类路径（去重、保持顺序）"""
        return list(self._build_classpath({}, set(), include_self=True))

    def depend_classpath(self) -> list[Path]:
        """同 classpath()，但不含模块自身产物（编译时使用）"""
        return list(self._build_classpath({}, set(), include_self=False))

    def flatten(self) -> list[FlatId]:
        """扁平化的依赖标识列表，包含 missing 条目以便直接报告缺什么"""
        return list(self._build_flat_ids({}, set(), include_self=True))

    def all_missing(self) -> list[MissingId]:
        return [i for i in self.flatten() if isinstance(i, MissingId)]

    def find_version(self, stable_id: str) -> str | None:
        """在传递依赖中查找 stable_id 的版本，深度优先、先到先得"""
        for dep_id in self.binary_deps.values():
            if dep_id.stable_id == stable_id:
                return dep_id.version
        for dep_id in self.shared_deps.values():
            if dep_id.stable_id == stable_id:
                return dep_id.version
        for mdeps in self.module_deps:
            version = mdeps.find_version(stable_id)
            if version is not None:
                return version
        return None

    def dump(self, indent: str = "", seen: set[int] | None = None) -> list[str]:
        """依赖树文本，已展开过的模块以 (*) 标记"""
        seen = set() if seen is None else seen
        lines: list[str] = []
        if id(self.module) in seen:
            lines.append(f"{indent}(*) {self.module.source}")
            return lines
        seen.add(id(self.module))
        lines.append(f"{indent}{self.module.source}")
        lines.append(f"{indent}= {self.module.classpath()}")
        dindent = indent + "- "
        lines.extend(f"{dindent}{p}" for p in self.binary_deps)
        lines.extend(f"{dindent}{p} (shared)" for p in self.shared_deps)
        lines.extend(f"{dindent}{p} (filtered)" for p in self.filtered_deps)
        lines.extend(f"{dindent}{m}" for m in self.missing)
        for mdeps in self.module_deps:
            lines.extend(mdeps.dump(dindent, seen))
        return lines

    def _build_classpath(
        self, into: dict[Path, None], seen: set[int], include_self: bool,
    ) -> dict[Path, None]:
        if id(self.module) in seen:
            return into
        seen.add(id(self.module))
        if include_self:
            into[self.module.classpath()] = None
        for path in self.binary_deps:
            into[path] = None
        for path in self.shared_deps:
            into[path] = None
        for dep in self.module_deps:
            dep._build_classpath(into, seen, include_self=True)
        return into

    def _build_flat_ids(
        self, into: dict[FlatId, None], seen: set[int], include_self: bool,
    ) -> dict[FlatId, None]:
        if id(self.module) in seen:
            return into
        seen.add(id(self.module))
        if include_self and self.module.source is not None:
            into[self.module.source] = None
        for dep_id in self.binary_deps.values():
            into[dep_id] = None
        for dep_id in self.shared_deps.values():
            into[dep_id] = None
        for missing in self.missing:
            into[missing] = None
        for dep in self.module_deps:
            dep._build_flat_ids(into, seen, include_self=True)
        return into


class DependencyResolver:
    """resolve(module, scope) -> Depends

    结果只取决于模块目录与两个外部解析器，可随时丢弃重算。
    单次 resolve 调用内对菱形依赖复用结果；调用之间不共享可变状态，
    因此并行构建的多个 worker 可以同时使用同一个实例。
    """

    def __init__(
        self,
        index: ModuleIndex,
        repo_resolver: RepoResolver,
        platform_resolver: PlatformResolver,
    ) -> None:
        self.index = index
        self.repo_resolver = repo_resolver
        self.platform_resolver = platform_resolver

    def resolve(self, module: Module, scope: Scope = Scope.MAIN) -> Depends:
        return self._resolve(module, scope, memo={}, active=[])

    def require(self, module: Module, scope: Scope = Scope.MAIN) -> Depends:
        """解析并要求没有任何缺失依赖（构建时使用）"""
        depends = self.resolve(module, scope)
        missing = depends.all_missing()
        if missing:
            listing = "\n".join(f"  {m}" for m in missing)
            raise MissingDependencyError(
                f"{module.display_name()} 存在缺失依赖:\n{listing}", missing=missing,
            )
        return depends

    def _resolve(
        self,
        module: Module,
        scope: Scope,
        memo: dict[int, Depends],
        active: list[Module],
    ) -> Depends:
        key = id(module)
        if key in memo:
            return memo[key]
        if any(m is module for m in active):
            chain = [m.display_name() for m in active] + [module.display_name()]
            raise CyclicDependencyError(
                f"模块之间存在循环依赖: {' -> '.join(chain)}", remaining=chain,
            )
        active.append(module)
        try:
            depends = self._resolve_module(module, scope, memo, active)
        finally:
            active.pop()
        memo[key] = depends
        return depends

    def _resolve_module(
        self,
        module: Module,
        scope: Scope,
        memo: dict[int, Depends],
        active: list[Module],
    ) -> Depends:
        result = Depends(module=module, scope=scope)

        repo_ids: list[RepoId] = []
        sys_ids: list[SystemId] = []
        for dep in module.depends:
            if not scope.includes(dep.scope):
                continue
            if isinstance(dep.id, RepoId):
                repo_ids.append(dep.id)
            elif isinstance(dep.id, SystemId):
                sys_ids.append(dep.id)
            else:
                dmod = self._lookup_module(module, dep.id)
                if dmod is None:
                    logger.debug("缺少源码依赖: %s -> %s", module.source, dep.id)
                    result.missing.append(MissingId(dep.id))
                else:
                    result.module_deps.append(self._resolve(dmod, scope, memo, active))

        # 模块依赖已经带来的二进制依赖直接继承，不再重复
        inherited: set[Path] = set()
        for mdeps in result.module_deps:
            mdeps.accum_binary_deps(inherited)

        if repo_ids:
            for repo_id, path in self.repo_resolver.resolve(repo_ids).items():
                if path is None:
                    result.missing.append(MissingId(repo_id))
                elif self.index.is_shared(repo_id):
                    result.shared_deps.setdefault(path, repo_id)
                elif path in inherited:
                    result.filtered_deps[path] = repo_id
                else:
                    result.binary_deps.setdefault(path, repo_id)

        for sys_id in sys_ids:
            try:
                path = self.platform_resolver.resolve(sys_id)
            except MissingDependencyError as e:
                logger.debug("平台依赖解析失败: %s (%s)", sys_id, e)
                result.missing.append(MissingId(sys_id))
                continue
            result.shared_deps.setdefault(path, sys_id)

        return result

    def _lookup_module(self, module: Module, source: Source) -> Module | None:
        # 同包模块直接查本包的模块表：包在安装前构建时尚未注册到仓库
        if module.is_sibling(source):
            return module.package.module(source.module)
        return self.index.module_by_source(source)
