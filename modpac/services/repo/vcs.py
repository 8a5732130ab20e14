"""版本控制驱动 - 支持 Git / Mercurial / Subversion

职责：
- 首次检出 (checkout)
- 判断目录是否已是某个仓库的检出 (exists)
- 拉取远端变更 (fetch) 并更新工作副本 (update)

命令全部通过 CommandExecutor 执行，非零退出码抛 FetchFailure。
"""

from __future__ import annotations

import logging
from pathlib import Path

from modpac.core.dep.models import VCS
from modpac.core.exceptions import FetchFailure
from modpac.utils.shell import CommandExecutor, run_cmd

logger = logging.getLogger(__name__)


class VCSDriver:
    """版本控制驱动基类"""

    vcs: VCS
    meta_dir = ""

    def __init__(self, executor: CommandExecutor | None = None) -> None:
        self.executor = executor

    def _run(self, cmd: list[str], cwd: Path, label: str) -> None:
        run_cmd(cmd, cwd=cwd, label=label, executor=self.executor, error_cls=FetchFailure)

    def exists(self, url: str, pkg_dir: Path) -> bool:
        return (pkg_dir / self.meta_dir).is_dir()

    def checkout(self, url: str, pkg_dir: Path) -> None:
        raise NotImplementedError

    def fetch(self, pkg_dir: Path) -> None:
        raise NotImplementedError

    def update(self, pkg_dir: Path) -> None:
        raise NotImplementedError


class GitDriver(VCSDriver):
    vcs = VCS.GIT
    meta_dir = ".git"

    def checkout(self, url: str, pkg_dir: Path) -> None:
        pkg_dir.parent.mkdir(parents=True, exist_ok=True)
        logger.info("git clone %s -> %s", url, pkg_dir)
        self._run(["git", "clone", url, str(pkg_dir)], pkg_dir.parent, "git clone")

    def fetch(self, pkg_dir: Path) -> None:
        self._run(["git", "fetch", "--quiet"], pkg_dir, "git fetch")

    def update(self, pkg_dir: Path) -> None:
        self._run(["git", "merge", "--ff-only", "--quiet", "@{upstream}"], pkg_dir, "git merge")


class HgDriver(VCSDriver):
    vcs = VCS.HG
    meta_dir = ".hg"

    def checkout(self, url: str, pkg_dir: Path) -> None:
        pkg_dir.parent.mkdir(parents=True, exist_ok=True)
        logger.info("hg clone %s -> %s", url, pkg_dir)
        self._run(["hg", "clone", url, str(pkg_dir)], pkg_dir.parent, "hg clone")

    def fetch(self, pkg_dir: Path) -> None:
        self._run(["hg", "pull", "--quiet"], pkg_dir, "hg pull")

    def update(self, pkg_dir: Path) -> None:
        self._run(["hg", "update", "--quiet"], pkg_dir, "hg update")


class SvnDriver(VCSDriver):
    vcs = VCS.SVN
    meta_dir = ".svn"

    def checkout(self, url: str, pkg_dir: Path) -> None:
        pkg_dir.parent.mkdir(parents=True, exist_ok=True)
        logger.info("svn checkout %s -> %s", url, pkg_dir)
        self._run(["svn", "checkout", "--quiet", url, str(pkg_dir)], pkg_dir.parent, "svn checkout")

    def fetch(self, pkg_dir: Path) -> None:
        # svn 没有独立的拉取步骤，update 一并完成
        pass

    def update(self, pkg_dir: Path) -> None:
        self._run(["svn", "update", "--quiet"], pkg_dir, "svn update")


_DRIVERS: dict[VCS, type[VCSDriver]] = {
    VCS.GIT: GitDriver,
    VCS.HG: HgDriver,
    VCS.SVN: SvnDriver,
}


def get_driver(vcs: VCS, executor: CommandExecutor | None = None) -> VCSDriver:
    """按版本控制类型获取驱动"""
    return _DRIVERS[vcs](executor)
