"""测试共享 fixture：临时安装根目录、假的解析器与命令执行器"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

import modpac.core.config as cfgmod
from modpac.core.config import Config
from modpac.core.dep.resolver import DependencyResolver
from modpac.core.repository import PackageRepository
from modpac.services.container import reset_container

from helpers import FakeExecutor, FakeMaven, FakeSystem, write_package


@pytest.fixture
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Config:
    """指向临时目录的独立配置，不读取真实的 ~/.m2 与 JAVA_HOME"""
    cfg = Config(
        home=str(tmp_path / "home"),
        m2_repo=str(tmp_path / "m2"),
        java_home="",
        jdk_dirs=[],
        maven_repos=[],
        debug=False,
    )
    monkeypatch.setattr(cfgmod, "_current", cfg)
    reset_container()
    yield cfg
    reset_container()


@pytest.fixture
def make_package(config: Config) -> Callable[..., Path]:
    """在安装根目录下生成包：make_package("a", depends=[...])"""

    def _make(name: str, **kwargs: object) -> Path:
        return write_package(config.packages_dir / name, name, **kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def repository(config: Config) -> PackageRepository:
    repo = PackageRepository(config)
    repo.init()
    return repo


@pytest.fixture
def fake_maven(tmp_path: Path) -> FakeMaven:
    return FakeMaven(tmp_path / "fake-m2")


@pytest.fixture
def fake_system(tmp_path: Path) -> FakeSystem:
    return FakeSystem(tmp_path / "fake-sys")


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def resolver(
    repository: PackageRepository, fake_maven: FakeMaven, fake_system: FakeSystem,
) -> DependencyResolver:
    return DependencyResolver(repository, fake_maven, fake_system)
