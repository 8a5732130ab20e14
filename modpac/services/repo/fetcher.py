"""包检出器：把一个源码引用检出到目录，并在构建完成后移入安装根目录"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modpac.core.repository import PackageRepository

from modpac.core.dep.models import Source
from modpac.core.exceptions import InstallFailure
from modpac.core.package import Package
from modpac.services.repo.vcs import VCSDriver, get_driver
from modpac.utils.files import move_dir
from modpac.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class PackageFetcher:
    """单个包的检出 / 更新 / 安装"""

    def __init__(
        self,
        repository: PackageRepository,
        source: Source,
        pkg_dir: Path,
        driver: VCSDriver | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.repository = repository
        self.source = source.package_source()
        self.pkg_dir = pkg_dir
        self.driver = driver if driver is not None else get_driver(source.vcs, executor)

    def read_package(self) -> Package:
        """读取 pkg_dir 中的包清单；调用前 pkg_dir 必须已是有效检出"""
        return Package.load(self.pkg_dir / Package.FILE)

    def checkout(self) -> None:
        """检出到 pkg_dir；已存在检出时改为更新"""
        if self.driver.exists(self.source.url, self.pkg_dir):
            self.update()
        else:
            self.driver.checkout(self.source.url, self.pkg_dir)

    def update(self) -> None:
        self.driver.fetch(self.pkg_dir)
        self.driver.update(self.pkg_dir)

    def install(self, pkg: Package) -> Package:
        """把检出目录移动到 Packages/<name> 并注册，返回注册后的包实例"""
        target = self.repository.package_dir(pkg.name)
        if target.exists():
            raise InstallFailure(f"安装目录已存在: {target}", package=pkg.name)
        move_dir(self.pkg_dir, target)
        logger.info("已安装 %s -> %s", pkg.name, target)
        if not self.repository.add_package(target / Package.FILE):
            raise InstallFailure(f"无法注册已安装的包: {target}", package=pkg.name)
        if pkg.source != self.source:
            logger.warning("包清单中的 source 与安装来源不一致: %s != %s", pkg.source, self.source)
        installed = self.repository.package_by_source(pkg.source) if pkg.source else None
        if installed is None:
            raise InstallFailure(f"无法注册已安装的包: {target}", package=pkg.name)
        return installed
