"""modpac 配置

目录位置、JDK 搜索路径、远程仓库和构建参数集中在一个 dataclass 里，
CLI 入口从 YAML 读取一次，之后经由 ServiceContainer 传给各组件。
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from modpac.core.exceptions import ConfigError
from modpac.utils.yaml_io import read_mapping, write_mapping

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "configs/modpac.yml"

MAVEN_CENTRAL = "https://repo1.maven.org/maven2/"


def _default_home() -> str:
    """定位元数据根目录: MODPAC_HOME > macOS Application Support > ~/.modpac"""
    override = os.getenv("MODPAC_HOME")
    if override:
        return override
    home = Path.home()
    app_support = home / "Library" / "Application Support"
    if app_support.exists():
        return str(app_support / "Modpac")
    return str(home / ".modpac")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


@dataclass
class Config:
    """包管理器全局配置"""

    # 目录
    home: str = field(default_factory=_default_home)
    m2_repo: str = field(
        default_factory=lambda: str(Path.home() / ".m2" / "repository"),
    )
    java_home: str = field(default_factory=lambda: os.getenv("JAVA_HOME", ""))
    jdk_dirs: list[str] = field(
        default_factory=lambda: ["/usr/lib/jvm", "/Library/Java/JavaVirtualMachines"],
    )

    # 远程仓库
    maven_repos: list[str] = field(default_factory=lambda: [MAVEN_CENTRAL])
    download_timeout: int = 60
    verify_checksums: bool = True  # 对照仓库的 .sha1 校验下载的产物

    # 运行时
    path_sep: str = os.pathsep
    debug: bool = field(default_factory=lambda: _env_flag("MODPAC_DEBUG"))
    symbol_suffix: str = ".class"

    # 构建
    max_workers: int = 0  # 0 表示按 CPU 数查表
    default_scala_version: str = "2.11.7"
    default_kotlin_version: str = "1.0.0-beta-1038"

    # 在所有模块间共享（而非各自复制）的仓库依赖: groupId -> [artifactId]
    shared_deps: dict[str, list[str]] = field(
        default_factory=lambda: {"org.scala-lang": ["scala-library"]},
    )

    # 放不到字段里的配置项
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def packages_dir(self) -> Path:
        return Path(self.home) / "Packages"

    @property
    def scratch_dir(self) -> Path:
        return Path(self.home) / "Scratch"

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """读取 YAML；文件缺失时全部取默认值，不认识的键收进 extra"""
        data = read_mapping(path)
        names = set(cls.__dataclass_fields__)
        fields = {k: v for k, v in data.items() if k in names and k != "extra"}
        unknown = {k: v for k, v in data.items() if k not in names}
        try:
            cfg = cls(**fields)
        except TypeError as e:
            raise ConfigError(f"配置文件无效: {path}: {e}") from e
        cfg.extra = {**(data.get("extra") or {}), **unknown}
        return cfg

    def save(self, path: str = DEFAULT_CONFIG_FILE) -> None:
        write_mapping(path, self.to_dict())

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# 由 CLI 入口调用 init_config 装入；未装入时 get_config 给出默认配置
_current: Config | None = None


def get_config() -> Config:
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """读取配置文件并设为当前配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.debug("配置已加载: %s", path)
    return _current
