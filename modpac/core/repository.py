"""包仓库：扫描安装根目录，维护包/模块目录

职责:
- 扫描 <home>/Packages，注册每个带 package.spam 的目录
- 按名称 / 源码标识查找包，按源码引用查找模块
- 计算包级依赖的拓扑序（构建、清理、全量重建都依赖它）
- 判定哪些仓库依赖需要在模块间共享

目录是读多写少的：只有同步的安装/升级路径会新增或替换包，
不会与并行构建同时发生。
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from modpac.core.config import Config
from modpac.core.dep.models import RepoId, Source
from modpac.core.exceptions import ConfigError, CyclicDependencyError
from modpac.core.package import Module, Package

logger = logging.getLogger(__name__)

MAX_PKG_DEPTH = 6


class PackageRepository:
    """已安装包的内存目录"""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._pkgs: dict[Source, Package] = {}

    # ---- 目录布局 ----

    @property
    def packages_dir(self) -> Path:
        return self.config.packages_dir

    @property
    def scratch_dir(self) -> Path:
        return self.config.scratch_dir

    def package_dir(self, name: str) -> Path:
        """名为 name 的包应安装到的目录"""
        return self.packages_dir / name

    # ---- 扫描 / 注册 ----

    def init(self) -> None:
        """扫描安装根目录，注册其中的全部包"""
        self.packages_dir.mkdir(parents=True, exist_ok=True)
        root_depth = len(self.packages_dir.parts)
        for dirpath, dirnames, _files in os.walk(self.packages_dir, followlinks=True):
            current = Path(dirpath)
            pkg_file = current / Package.FILE
            if pkg_file.exists():
                self.add_package(pkg_file)
                dirnames.clear()  # 包内不再向下查找
                continue
            if len(current.parts) - root_depth >= MAX_PKG_DEPTH:
                dirnames.clear()
            else:
                dirnames.sort()
        logger.debug("已加载 %d 个包", len(self._pkgs))

    def add_package(self, pkg_file: Path) -> bool:
        """解析并注册 pkg_file 描述的包，失败时记录日志并返回 False"""
        try:
            pkg = Package.load(pkg_file)
        except OSError:
            logger.exception("无法处理包: %s", pkg_file)
            return False
        if pkg.errors:
            logger.warning("%s 中存在错误:", pkg_file)
            for error in pkg.errors:
                logger.warning("- %s", error)
        if pkg.source is None:
            logger.error("包缺少 source，无法注册: %s", pkg_file)
            return False
        self.register(pkg)
        return True

    def register(self, pkg: Package) -> None:
        """注册（或替换同源的旧实例）"""
        if pkg.source is None:
            raise ConfigError(f"包 {pkg.name} 缺少 source，无法注册")
        old = self._pkgs.get(pkg.source)
        self._pkgs[pkg.source] = pkg
        if old is not None and old is not pkg:
            logger.debug("替换已注册的包: %s", pkg.name)

    # ---- 查找 ----

    def packages(self) -> list[Package]:
        return list(self._pkgs.values())

    def package_by_name(self, name: str) -> Package | None:
        for pkg in self._pkgs.values():
            if pkg.name == name:
                return pkg
        return None

    def package_by_source(self, source: Source) -> Package | None:
        return self._pkgs.get(source)

    def module_by_source(self, source: Source) -> Module | None:
        """按源码引用查找模块：包身份取自去掉片段的 URL，模块名取自片段"""
        pkg = self._pkgs.get(source.package_source())
        return None if pkg is None else pkg.module(source.module)

    def is_shared(self, repo_id: RepoId) -> bool:
        """该仓库依赖是否在所有模块间共享同一份加载器"""
        artifacts = self.config.shared_deps.get(repo_id.group) or []
        return repo_id.artifact in artifacts

    # ---- 包级依赖 ----

    def package_depends(self, pkg: Package) -> list[Package]:
        """pkg 的传递包依赖，依赖在前、pkg 自身排在最后"""
        into: dict[Source, Package] = {}
        self._add_package_depends(into, pkg)
        return list(into.values())

    def _add_package_depends(self, into: dict[Source, Package], pkg: Package) -> None:
        if pkg.source is None:
            raise ConfigError(f"包 {pkg.name} 缺少 source")
        if pkg.source in into:
            return
        # 先占位，防止包间环导致无限递归；结束时移到末尾保证依赖在前
        into[pkg.source] = pkg
        for mod in pkg.modules():
            for dep in mod.depends:
                if not isinstance(dep.id, Source):
                    continue
                dpkg = self._pkgs.get(dep.id.package_source())
                if dpkg is None:
                    logger.warning("缺少依赖: %s -> %s", mod.source, dep.id)
                elif dpkg is not pkg:
                    self._add_package_depends(into, dpkg)
        del into[pkg.source]
        into[pkg.source] = pkg

    def topo_packages(self) -> list[Package]:
        """全部已安装包的拓扑序（依赖在前），无法排序时抛 CyclicDependencyError"""
        ordered: list[Package] = []
        done: set[Source] = set()
        remain = sorted(self._pkgs.items(), key=lambda item: item[1].name)
        while remain:
            progressed = False
            for source, pkg in list(remain):
                # 未安装的依赖不参与排序，由构建阶段报告缺失
                deps = [s for s in pkg.package_depends() if s in self._pkgs]
                if all(s in done for s in deps):
                    done.add(source)
                    ordered.append(pkg)
                    remain.remove((source, pkg))
                    progressed = True
            if not progressed:
                names = [pkg.name for _, pkg in remain]
                raise CyclicDependencyError(f"包之间存在循环依赖: {names}", remaining=names)
        return ordered
