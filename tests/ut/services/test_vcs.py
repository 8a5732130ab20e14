"""版本控制驱动与包检出器测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from modpac.core.dep.models import VCS, Source
from modpac.core.exceptions import FetchFailure, InstallFailure
from modpac.core.repository import PackageRepository
from modpac.services.repo import PackageFetcher
from modpac.services.repo.vcs import GitDriver, HgDriver, SvnDriver, get_driver

from helpers import FakeExecutor, source_url, write_package


class TestDrivers:
    def test_get_driver(self) -> None:
        assert isinstance(get_driver(VCS.GIT), GitDriver)
        assert isinstance(get_driver(VCS.HG), HgDriver)
        assert isinstance(get_driver(VCS.SVN), SvnDriver)

    def test_git_commands(self, tmp_path: Path) -> None:
        fake = FakeExecutor()
        driver = GitDriver(fake)
        pkg_dir = tmp_path / "scratch" / "checkout"
        driver.checkout("https://example.com/a.git", pkg_dir)
        driver.fetch(pkg_dir)
        driver.update(pkg_dir)
        assert fake.calls == [
            (["git", "clone", "https://example.com/a.git", str(pkg_dir)], pkg_dir.parent),
            (["git", "fetch", "--quiet"], pkg_dir),
            (["git", "merge", "--ff-only", "--quiet", "@{upstream}"], pkg_dir),
        ]
        assert pkg_dir.parent.is_dir()

    def test_svn_fetch_is_noop(self, tmp_path: Path) -> None:
        fake = FakeExecutor()
        driver = SvnDriver(fake)
        driver.fetch(tmp_path)
        driver.update(tmp_path)
        assert [cmd for cmd, _ in fake.calls] == [["svn", "update", "--quiet"]]

    def test_exists_checks_meta_dir(self, tmp_path: Path) -> None:
        driver = HgDriver(FakeExecutor())
        assert not driver.exists("https://example.com/a", tmp_path)
        (tmp_path / ".hg").mkdir()
        assert driver.exists("https://example.com/a", tmp_path)

    def test_failure_raises_fetch_failure(self, tmp_path: Path) -> None:
        driver = GitDriver(FakeExecutor(lambda cmd: 128))
        with pytest.raises(FetchFailure, match="git clone失败 \\(rc=128\\)"):
            driver.checkout("https://example.com/a.git", tmp_path / "x")


class TestPackageFetcher:
    def test_checkout_or_update(self, repository: PackageRepository, tmp_path: Path) -> None:
        fake = FakeExecutor()
        src = Source.parse(source_url("a") + "#api")
        fetcher = PackageFetcher(repository, src, tmp_path / "co", executor=fake)
        # 模块片段不参与检出
        assert fetcher.source == Source.parse(source_url("a"))

        fetcher.checkout()
        assert fake.calls[0][0][:3] == ["git", "clone", "https://example.com/a.git"]

        (tmp_path / "co" / ".git").mkdir(parents=True)
        fetcher.checkout()
        assert [cmd[1] for cmd, _ in fake.calls[1:]] == ["fetch", "merge"]

    def test_install_moves_and_registers(self, repository: PackageRepository, tmp_path: Path) -> None:
        write_package(tmp_path / "co", "a")
        fetcher = PackageFetcher(repository, Source.parse(source_url("a")), tmp_path / "co",
                                 executor=FakeExecutor())
        installed = fetcher.install(fetcher.read_package())
        assert installed.root == repository.package_dir("a")
        assert repository.package_by_name("a") is installed
        assert not (tmp_path / "co").exists()

    def test_install_refuses_existing_dir(self, repository: PackageRepository, tmp_path: Path) -> None:
        repository.package_dir("a").mkdir(parents=True)
        write_package(tmp_path / "co", "a")
        fetcher = PackageFetcher(repository, Source.parse(source_url("a")), tmp_path / "co",
                                 executor=FakeExecutor())
        with pytest.raises(InstallFailure, match="安装目录已存在"):
            fetcher.install(fetcher.read_package())
