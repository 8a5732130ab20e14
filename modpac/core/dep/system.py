"""平台依赖解析：本机 JDK 发现与 jdk:tools:<version> 解析"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from modpac.core.config import Config
from modpac.core.dep.models import SystemId
from modpac.core.exceptions import MissingDependencyError

logger = logging.getLogger(__name__)


@dataclass
class JDK:
    """本机安装的一个 JDK"""

    home: Path
    release: dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, home: Path) -> JDK:
        """读取 <home>/release 中的元数据，文件缺失时只记日志"""
        release: dict[str, str] = {}
        try:
            lines = (home / "release").read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.debug("无法读取 JDK release 文件: %s (%s)", home, e)
            lines = []
        for line in lines:
            key, sep, value = line.partition("=")
            if not sep:
                continue
            release[key.strip()] = value.strip().strip('"')
        return cls(home, release)

    @property
    def version(self) -> str:
        return self.release.get("JAVA_VERSION", "1.?.?")

    @property
    def bin_java(self) -> Path:
        return self.home / "bin" / "java"

    @property
    def tools_jar(self) -> Path:
        return self.home / "lib" / "tools.jar"

    @staticmethod
    def is_home(path: Path) -> bool:
        return (path / "bin" / "javac").exists() and (path / "release").exists()


def find_jdks(config: Config) -> list[JDK]:
    """按优先级列出本机 JDK: 配置的 java_home 在前，其后是 jdk_dirs 下的安装"""
    found: list[JDK] = []
    seen: set[Path] = set()

    def add(home: Path) -> None:
        home = home.resolve()
        if home not in seen and JDK.is_home(home):
            seen.add(home)
            found.append(JDK.load(home))

    if config.java_home:
        add(Path(config.java_home))
    for dirname in config.jdk_dirs:
        root = Path(dirname)
        if not root.is_dir():
            continue
        for sub in sorted(root.iterdir()):
            # macOS 的 JDK 安装在 <name>.jdk/Contents/Home 下
            mac_home = sub / "Contents" / "Home"
            add(mac_home if mac_home.is_dir() else sub)
    return found


class SystemResolver:
    """平台产物解析器，目前只认识 jdk:tools"""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._jdks: list[JDK] | None = None

    def jdks(self) -> list[JDK]:
        if self._jdks is None:
            self._jdks = find_jdks(self.config)
        return self._jdks

    def resolve(self, id: SystemId) -> Path:
        if id.platform != "jdk":
            raise MissingDependencyError(f"未知的平台: {id}", missing=[id])
        if id.artifact != "tools":
            raise MissingDependencyError(f"未知的 JDK 产物: {id}", missing=[id])
        for jdk in self.jdks():
            if jdk.version.startswith(id.version):
                return jdk.tools_jar
        # 找不到匹配版本时退回到配置的 JDK
        if self.config.java_home:
            logger.warning("没有版本匹配 %s 的 JDK，使用 %s", id, self.config.java_home)
            return Path(self.config.java_home) / "lib" / "tools.jar"
        raise MissingDependencyError(f"找不到匹配的 JDK: {id}", missing=[id])
