"""构建调度器：有界并行地构建一组按拓扑序排列的包

N 个 worker 共享同一个队列。worker 取出队首的包后，
若其包级依赖尚未全部构建完成就在条件变量上等待；
每次被唤醒都重新检查失败标志，一旦有包失败，所有 worker 尽快退出。
失败不会立即中止整轮构建，而是全部收集后统一报告。
"""

from __future__ import annotations

import logging
import os
import threading
from collections import deque
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

from modpac.core.dep.models import Source
from modpac.core.exceptions import ScheduleFailure
from modpac.core.package import Package

logger = logging.getLogger(__name__)

BuildFn = Callable[[Package], None]

# CPU 数（封顶 8）-> worker 数，保留余量给编译器自身的线程
WORKER_STEPS = (1, 1, 1, 2, 2, 3, 4, 5, 6)


def workers_for(cpus: int | None = None, override: int = 0) -> int:
    """按 CPU 数查表得到 worker 数；override > 0 时直接使用"""
    if override > 0:
        return override
    if cpus is None:
        cpus = os.cpu_count() or 1
    return WORKER_STEPS[max(0, min(cpus, len(WORKER_STEPS) - 1))]


class BuildScheduler:
    """并行构建调度器

    packages 必须已按拓扑序排列（依赖在前），否则 worker 可能
    等待一个仍在队列中、无人构建的依赖。
    """

    def __init__(
        self,
        packages: Sequence[Package],
        build_fn: BuildFn,
        workers: int = 1,
        resume_from: str | None = None,
    ) -> None:
        self.build_fn = build_fn
        self.workers = max(1, workers)
        self._cond = threading.Condition()
        self._queue: deque[Package] = deque(packages)
        self._built: set[Source] = set()
        self._order: list[str] = []
        self._failures: list[tuple[str, BaseException]] = []

        # 不在本轮中的依赖视为已就绪，缺失与否交给构建阶段报告
        in_run = {p.source for p in packages if p.source is not None}
        self._outside: set[Source] = {
            s for p in packages for s in p.package_depends() if s not in in_run
        }

        if resume_from is not None:
            self._skip_until(resume_from)

    def _skip_until(self, name: str) -> None:
        names = [p.name for p in self._queue]
        if name not in names:
            logger.warning("未找到包 '%s'，不跳过任何包", name)
            return
        for _ in range(names.index(name)):
            pkg = self._queue.popleft()
            if pkg.source is not None:
                self._built.add(pkg.source)
            logger.info("跳过 %s", pkg.name)

    @property
    def built(self) -> list[str]:
        """按完成顺序排列的已构建包名"""
        with self._cond:
            return list(self._order)

    @property
    def failures(self) -> list[tuple[str, BaseException]]:
        with self._cond:
            return list(self._failures)

    def _ready(self, pkg: Package) -> bool:
        return pkg.depends_satisfied(self._built | self._outside)

    def _next(self) -> Package | None:
        with self._cond:
            if self._failures or not self._queue:
                return None
            pkg = self._queue.popleft()
            while not self._ready(pkg):
                self._cond.wait()
                if self._failures:
                    return None
            return pkg

    def _succeeded(self, pkg: Package) -> None:
        with self._cond:
            if pkg.source is not None:
                self._built.add(pkg.source)
            self._order.append(pkg.name)
            self._cond.notify_all()

    def _failed(self, pkg: Package, err: BaseException) -> None:
        with self._cond:
            self._failures.append((f"构建 {pkg.name} 失败", err))
            self._cond.notify_all()

    def _worker(self) -> None:
        while True:
            pkg = self._next()
            if pkg is None:
                return
            logger.info("构建: %s", pkg.name)
            try:
                self.build_fn(pkg)
            # 构建函数的任何异常都必须记录下来，否则等待中的 worker 无法被唤醒
            except Exception as e:  # noqa: BLE001
                logger.debug("构建失败: %s", pkg.name, exc_info=True)
                self._failed(pkg, e)
            else:
                self._succeeded(pkg)

    def run(self) -> list[str]:
        """构建全部包，返回按完成顺序排列的包名；有失败时抛 ScheduleFailure"""
        if not self._queue:
            return []
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="build-worker") as executor:
            futures = [executor.submit(self._worker) for _ in range(self.workers)]
            for future in futures:
                future.result()

        failures = self.failures
        if failures:
            for message, err in failures:
                logger.error("%s: %s", message, err, exc_info=err)
            raise ScheduleFailure(failures)
        return self.built
