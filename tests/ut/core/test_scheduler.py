"""构建调度器测试：依赖门控、并行度、失败收集、断点续建"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable

import pytest

from modpac.core.exceptions import BuildFailure, ScheduleFailure
from modpac.core.package import Package
from modpac.core.repository import PackageRepository
from modpac.core.scheduler import WORKER_STEPS, BuildScheduler, workers_for

from helpers import source_url


@pytest.fixture
def chain(repository: PackageRepository, make_package: Callable[..., Path]) -> list[Package]:
    """a <- b <- c，按拓扑序返回"""
    repository.add_package(make_package("a"))
    repository.add_package(make_package("b", depends=[source_url("a")]))
    repository.add_package(make_package("c", depends=[source_url("b")]))
    return repository.topo_packages()


class Recorder:
    """记录构建开始/结束事件的构建函数"""

    def __init__(self, fail: str | None = None, delay: float = 0.02) -> None:
        self.fail = fail
        self.delay = delay
        self.events: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def __call__(self, pkg: Package) -> None:
        with self._lock:
            self.events.append(("start", pkg.name))
        time.sleep(self.delay)
        if pkg.name == self.fail:
            raise BuildFailure(f"{pkg.name} 编译失败")
        with self._lock:
            self.events.append(("end", pkg.name))

    def started(self) -> list[str]:
        return [name for kind, name in self.events if kind == "start"]


class TestWorkersFor:
    @pytest.mark.parametrize(
        "cpus, expected",
        [(0, 1), (1, 1), (2, 1), (3, 2), (4, 2), (5, 3), (6, 4), (7, 5), (8, 6), (64, 6)],
    )
    def test_table(self, cpus: int, expected: int) -> None:
        assert workers_for(cpus) == expected

    def test_override(self) -> None:
        assert workers_for(8, override=3) == 3

    def test_default_uses_cpu_count(self) -> None:
        assert workers_for() in WORKER_STEPS


class TestBuildScheduler:
    def test_chain_builds_in_dependency_order(self, chain: list[Package]) -> None:
        build = Recorder()
        built = BuildScheduler(chain, build, workers=2).run()
        assert built == ["a", "b", "c"]
        # 依赖结束之前不会开始构建
        assert build.events.index(("end", "a")) < build.events.index(("start", "b"))
        assert build.events.index(("end", "b")) < build.events.index(("start", "c"))

    def test_failure_stops_dependents(self, chain: list[Package]) -> None:
        build = Recorder(fail="b")
        scheduler = BuildScheduler(chain, build, workers=2)
        with pytest.raises(ScheduleFailure, match="1 个包构建失败") as exc:
            scheduler.run()
        assert len(exc.value.failures) == 1
        message, err = exc.value.failures[0]
        assert "b" in message
        assert isinstance(err, BuildFailure)
        assert "c" not in build.started()
        assert scheduler.built == ["a"]

    def test_unexpected_exception_recorded(self, chain: list[Package]) -> None:
        def build(pkg: Package) -> None:
            raise RuntimeError("boom")

        with pytest.raises(ScheduleFailure) as exc:
            BuildScheduler(chain, build, workers=3).run()
        assert [m for m, _ in exc.value.failures] == ["构建 a 失败"]

    def test_independent_packages_run_in_parallel(
        self, repository: PackageRepository, make_package: Callable[..., Path],
    ) -> None:
        repository.add_package(make_package("x"))
        repository.add_package(make_package("y"))
        barrier = threading.Barrier(2, timeout=5)

        # 两个包都必须同时处于构建中，barrier 才能放行
        built = BuildScheduler(repository.topo_packages(), lambda p: barrier.wait(), workers=2).run()
        assert sorted(built) == ["x", "y"]

    def test_resume_from_skips_earlier(self, chain: list[Package]) -> None:
        build = Recorder()
        built = BuildScheduler(chain, build, workers=2, resume_from="b").run()
        assert built == ["b", "c"]
        assert "a" not in build.started()

    def test_resume_from_unknown_builds_all(self, chain: list[Package]) -> None:
        built = BuildScheduler(chain, Recorder(), resume_from="zzz").run()
        assert built == ["a", "b", "c"]

    def test_dependency_outside_run_does_not_block(self, chain: list[Package]) -> None:
        # 只构建 c：b 不在本轮中，不参与门控
        assert BuildScheduler(chain[2:], Recorder(), workers=2).run() == ["c"]

    def test_empty(self) -> None:
        assert BuildScheduler([], Recorder(), workers=4).run() == []
