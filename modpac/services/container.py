"""组件容器

CLI 入口把容器设为全局容器（测试经由 ctx.obj 传入预先构造的容器），
各命令再通过 get_container() 取组件，而不是自己构造。
同一容器内 repository / maven / resolver / builder 只构造一次，
因此一次命令中包目录只扫描一次，Maven 解析缓存也只有一份。

装配关系:
  resolver  ← repository + maven + system
  toolchain ← maven (+ executor)
  builder   ← resolver + toolchain
  installer ← repository + builder (+ executor)，每次访问新建

测试时传入 Config 与假执行器:
    container = ServiceContainer(config=cfg, executor=FakeExecutor())
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, TypeVar

if TYPE_CHECKING:
    from modpac.core.config import Config
    from modpac.core.dep.maven import MavenResolver
    from modpac.core.dep.resolver import DependencyResolver
    from modpac.core.dep.system import SystemResolver
    from modpac.core.loader import ModuleLoadGraph
    from modpac.core.repository import PackageRepository
    from modpac.services.build.builder import PackageBuilder
    from modpac.services.build.toolchain import Toolchain
    from modpac.services.installer import PackageInstaller
    from modpac.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ServiceContainer:
    """按名字缓存组件，首次访问时才 import 并构造"""

    def __init__(
        self,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        if config is None:
            from modpac.core.config import get_config
            config = get_config()
        self._config = config
        self._executor = executor
        self._instances: dict[str, object] = {}

    def _once(self, name: str, factory: Callable[[], T]) -> T:
        if name not in self._instances:
            logger.debug("构造组件: %s", name)
            self._instances[name] = factory()
        return self._instances[name]  # type: ignore[return-value]

    @property
    def config(self) -> Config:
        return self._config

    @property
    def repository(self) -> PackageRepository:
        def make() -> PackageRepository:
            from modpac.core.repository import PackageRepository
            repo = PackageRepository(self._config)
            repo.init()
            return repo
        return self._once("repository", make)

    @property
    def maven(self) -> MavenResolver:
        from modpac.core.dep.maven import MavenResolver
        return self._once("maven", lambda: MavenResolver(self._config))

    @property
    def system(self) -> SystemResolver:
        from modpac.core.dep.system import SystemResolver
        return self._once("system", lambda: SystemResolver(self._config))

    @property
    def resolver(self) -> DependencyResolver:
        from modpac.core.dep.resolver import DependencyResolver
        return self._once(
            "resolver",
            lambda: DependencyResolver(self.repository, self.maven, self.system),
        )

    @property
    def toolchain(self) -> Toolchain:
        from modpac.services.build.toolchain import Toolchain
        return self._once(
            "toolchain",
            lambda: Toolchain(self._config, self.maven, executor=self._executor),
        )

    @property
    def builder(self) -> PackageBuilder:
        from modpac.services.build.builder import PackageBuilder
        return self._once(
            "builder",
            lambda: PackageBuilder(self.resolver, self.toolchain, self._config),
        )

    @property
    def installer(self) -> PackageInstaller:
        """不缓存：processed / force_build 只在一次安装或升级内有效"""
        from modpac.services.installer import PackageInstaller
        return PackageInstaller(self.repository, self.builder, executor=self._executor)

    def load_graph(self) -> ModuleLoadGraph:
        """每次运行一张新图；共享依赖的加载器仍走进程级缓存"""
        from modpac.core.loader import ModuleLoadGraph
        return ModuleLoadGraph(suffix=self._config.symbol_suffix)


_current: ServiceContainer | None = None
_lock = threading.Lock()


def get_container() -> ServiceContainer:
    global _current  # noqa: PLW0603
    with _lock:
        if _current is None:
            _current = ServiceContainer()
        return _current


def set_container(container: ServiceContainer) -> None:
    global _current  # noqa: PLW0603
    with _lock:
        _current = container


def reset_container() -> None:
    """丢弃当前容器，下次 get_container() 按当前配置重建"""
    global _current  # noqa: PLW0603
    with _lock:
        _current = None
