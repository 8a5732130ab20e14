"""安装 / 升级编排

install(source):
  检出到 Scratch 下的临时目录 → 读取清单 → 递归安装/升级依赖 → 构建 → 移入 Packages/<name>

upgrade(pkg):
  更新检出 → 重新读取清单 → 递归安装/升级新依赖 → 重建（强制或增量）
  → 若确实重建了，标记所有依赖它的包为强制重建并递归升级它们

processed / force_build 两个集合挂在 installer 实例上，贯穿一次操作的整棵调用树：
每个包在一次操作中最多处理一次，包间存在环时也不会无限递归。
"""

from __future__ import annotations

import atexit
import functools
import logging
import tempfile
from pathlib import Path
from typing import Callable

from modpac.core.dep.models import Source
from modpac.core.exceptions import ConfigError, InstallFailure, ModpacError, UpgradeFailure
from modpac.core.package import Package
from modpac.core.repository import PackageRepository
from modpac.services.build.builder import PackageBuilder
from modpac.services.repo.fetcher import PackageFetcher
from modpac.utils.files import delete_all
from modpac.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

FetcherFactory = Callable[[Source, Path], PackageFetcher]


def _cleanup(path: Path) -> None:
    try:
        delete_all(path)
    except OSError as e:
        logger.warning("无法清理临时目录 %s: %s", path, e)


class PackageInstaller:
    """递归安装 / 升级包及其依赖"""

    def __init__(
        self,
        repository: PackageRepository,
        builder: PackageBuilder,
        fetcher_factory: FetcherFactory | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.repository = repository
        self.builder = builder
        self._make_fetcher = fetcher_factory or (
            lambda source, pkg_dir: PackageFetcher(repository, source, pkg_dir, executor=executor)
        )
        self.processed: set[Source] = set()
        self.force_build: set[Source] = set()

    # ---- 安装 ----

    def install(self, source: Source) -> Package:
        """安装 source 指向的包及其全部依赖，返回已注册的包"""
        source = source.package_source()
        if self.repository.package_by_source(source) is not None:
            raise InstallFailure(
                f"包已安装: {source}\n如需升级请使用 'modpac upgrade'", package=str(source),
            )

        scratch = self.repository.scratch_dir
        scratch.mkdir(parents=True, exist_ok=True)
        temp = Path(tempfile.mkdtemp(prefix="install", dir=scratch))
        # 进程异常退出时也要清理；每个临时目录单独注册，嵌套安装互不影响
        cleanup = functools.partial(_cleanup, temp)
        atexit.register(cleanup)
        try:
            fetcher = self._make_fetcher(source, temp / "checkout")
            logger.info("检出 %s 到临时目录...", source)
            fetcher.checkout()
            pkg = fetcher.read_package()
            self.processed.add(source)

            # 先安装依赖，再构建本包
            self.install_depends(pkg)

            logger.info("构建 %s ...", pkg.name)
            self.builder.build(pkg)

            logger.info("安装 %s 到 Packages/%s ...", source, pkg.name)
            return fetcher.install(pkg)
        except (ModpacError, OSError) as e:
            raise InstallFailure(f"安装 {source} 失败: {e}", package=str(source)) from e
        finally:
            cleanup()
            atexit.unregister(cleanup)

    def install_depends(self, pkg: Package) -> None:
        """确保 pkg 依赖的包都已安装且已升级"""
        for source in pkg.package_depends():
            dpkg = self.repository.package_by_source(source)
            if dpkg is None:
                if source in self.processed:
                    # 本次操作中正在安装（包间有环），不再重入
                    continue
                self.install(source)
            else:
                self.upgrade(dpkg)

    # ---- 升级 ----

    def upgrade(self, pkg: Package) -> Package:
        """升级 pkg 及其依赖；本次操作中已处理过的包直接返回"""
        if pkg.source is None:
            raise UpgradeFailure(f"包 {pkg.name} 缺少 source，无法升级", package=pkg.name)
        if pkg.source in self.processed:
            return pkg
        self.processed.add(pkg.source)

        try:
            fetcher = self._make_fetcher(pkg.source, pkg.root)
            logger.info("更新 %s ...", pkg.source)
            fetcher.update()

            npkg = fetcher.read_package()
            if npkg.source is None:
                raise ConfigError(f"更新后的清单缺少有效的 source: {npkg.root / Package.FILE}")
            if npkg.source != pkg.source:
                raise ConfigError(f"更新后的清单 source 已变更: {pkg.source} -> {npkg.source}")
            pending = [s for s in npkg.package_depends() if s not in self.processed]
            if pending:
                logger.info("更新 %s 依赖的 %d 个包...", npkg.name, len(pending))
                self.install_depends(npkg)

            self.repository.register(npkg)
            if self._rebuild(npkg):
                self._upgrade_dependents(npkg)
            return npkg
        except (ModpacError, OSError) as e:
            raise UpgradeFailure(f"升级 {pkg.name} 失败: {e}", package=pkg.name) from e

    def _rebuild(self, pkg: Package) -> bool:
        if pkg.source in self.force_build:
            self.builder.build(pkg)
            return True
        return self.builder.rebuild(pkg)

    def _upgrade_dependents(self, pkg: Package) -> None:
        """pkg 已重建：依赖它的包必须强制重建"""
        dependents: list[Package] = []
        for dpkg in self.repository.packages():
            if dpkg is pkg or dpkg.source is None or pkg.source not in dpkg.package_depends():
                continue
            # 即使该包已在本次操作中升级过，也可能还没按新的依赖重建
            self.force_build.add(dpkg.source)
            if dpkg.source not in self.processed:
                dependents.append(dpkg)
        if dependents:
            logger.info("升级依赖 %s 的 %d 个包...", pkg.name, len(dependents))
            for dpkg in dependents:
                self.upgrade(dpkg)
