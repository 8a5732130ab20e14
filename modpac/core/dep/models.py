"""依赖数据模型

依赖标识的三种形态:
- RepoId:   仓库坐标 group:artifact:version[:kind[:classifier]]
- SystemId: 平台产物 platform:artifact:version
- Source:   源码引用 <vcs>:<url>[#module]

每种标识都提供 stable_id（不含版本的身份）和 version，
用于在依赖图中识别「同一产物的不同版本」。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union
from urllib.parse import urldefrag, urlsplit

from modpac.core.exceptions import ConfigError

DEFAULT_MODULE = "main"


@dataclass(frozen=True)
class RepoId:
    """Maven 仓库坐标"""

    group: str
    artifact: str
    version: str
    kind: str = "jar"
    classifier: str | None = None

    @classmethod
    def parse(cls, text: str) -> RepoId:
        bits = text.split(":", 4)
        if len(bits) < 3 or not all(bits[:3]):
            raise ConfigError(
                f"无效的仓库坐标: {text} (期望 'groupId:artifactId:version')",
            )
        kind = bits[3] if len(bits) > 3 and bits[3] else "jar"
        classifier = bits[4] if len(bits) > 4 and bits[4] else None
        return cls(bits[0], bits[1], bits[2], kind, classifier)

    @classmethod
    def from_path(cls, path: Path, m2_repo: Path) -> RepoId | None:
        """从本地仓库路径反推坐标，路径不在本地仓库内时返回 None"""
        try:
            rel = path.relative_to(m2_repo)
        except ValueError:
            return None
        parts = rel.parts
        if len(parts) < 4:
            return None
        group = ".".join(parts[:-3])
        artifact, version, filename = parts[-3], parts[-2], parts[-1]
        kind = filename.rsplit(".", 1)[-1] if "." in filename else "jar"
        stem = filename[: -(len(kind) + 1)] if "." in filename else filename
        prefix = f"{artifact}-{version}-"
        classifier = stem[len(prefix):] if stem.startswith(prefix) else None
        return cls(group, artifact, version, kind, classifier or None)

    @property
    def stable_id(self) -> str:
        return f"{self.group}:{self.artifact}"

    def __str__(self) -> str:
        text = f"{self.group}:{self.artifact}:{self.version}:{self.kind}"
        return f"{text}:{self.classifier}" if self.classifier else text


@dataclass(frozen=True)
class SystemId:
    """平台提供的产物（如 jdk:tools:1.8），始终按共享依赖处理"""

    platform: str
    artifact: str
    version: str

    @classmethod
    def parse(cls, text: str) -> SystemId:
        bits = text.split(":")
        if len(bits) != 3 or not all(bits):
            raise ConfigError(
                f"无效的平台依赖: {text} (期望 'platform:artifact:version')",
            )
        return cls(bits[0], bits[1], bits[2])

    @property
    def stable_id(self) -> str:
        return f"{self.platform}:{self.artifact}"

    def __str__(self) -> str:
        return f"{self.platform}:{self.artifact}:{self.version}"


class VCS(str, Enum):
    GIT = "git"
    HG = "hg"
    SVN = "svn"

    @classmethod
    def parse(cls, text: str) -> VCS:
        try:
            return cls(text.lower())
        except ValueError:
            raise ConfigError(f"未知的版本控制类型: {text}") from None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Source:
    """源码引用；URL 片段（#name）指定包内模块，缺省为默认模块"""

    vcs: VCS
    url: str

    @classmethod
    def parse(cls, text: str) -> Source:
        vcs, sep, url = text.partition(":")
        if not sep:
            raise ConfigError(f"无效的源码 URI: {text}")
        return cls.of(vcs, url)

    @classmethod
    def of(cls, vcs: str, url: str) -> Source:
        if not url:
            raise ConfigError(f"源码 URI 缺少地址: {vcs}:")
        try:
            urlsplit(url)
        except ValueError as e:
            raise ConfigError(f"无效的源码 URI: {vcs}:{url} ({e})") from e
        return cls(VCS.parse(vcs), url)

    @property
    def module(self) -> str:
        fragment = urldefrag(self.url).fragment
        return fragment or DEFAULT_MODULE

    def package_source(self) -> Source:
        """只保留包身份，去掉模块片段"""
        base, fragment = urldefrag(self.url)
        return self if not fragment else Source(self.vcs, base)

    def module_source(self, module: str) -> Source:
        base = urldefrag(self.url).url
        return Source(self.vcs, f"{base}#{module}")

    @property
    def stable_id(self) -> str:
        return f"{self.vcs}:{self.url}"

    @property
    def version(self) -> str:
        return "HEAD"

    def __str__(self) -> str:
        return f"{self.vcs}:{self.url}"


@dataclass(frozen=True)
class MissingId:
    """无法解析的依赖，保留原始标识供汇总报告"""

    id: DependId

    @property
    def stable_id(self) -> str:
        return self.id.stable_id

    @property
    def version(self) -> str:
        return self.id.version

    def __str__(self) -> str:
        return f"*missing: {self.id}*"


DependId = Union[RepoId, SystemId, Source]


class Scope(str, Enum):
    """依赖作用域

    作为解析作用域时: MAIN 只包含 main 依赖，TEST 包含 main + test，
    exec 依赖只在运行时使用，任何解析都不包含。
    """

    MAIN = "main"
    TEST = "test"
    EXEC = "exec"

    def includes(self, dep_scope: Scope) -> bool:
        if dep_scope is Scope.EXEC:
            return False
        if self is Scope.TEST:
            return True
        return dep_scope is Scope.MAIN

    def __str__(self) -> str:
        return self.value


_SCOPE_NAMES = {s.value for s in Scope}


@dataclass(frozen=True)
class Depend:
    """模块声明的一条依赖"""

    id: DependId
    scope: Scope = Scope.MAIN

    @classmethod
    def parse(cls, text: str, scope: Scope = Scope.MAIN) -> Depend:
        """解析 <tag>:<data>[:scope]

        tag 为 mvn → 仓库坐标，sys → 平台产物，其余视为版本控制类型。
        仓库坐标的第 5 段是 classifier，因此 g:a:v:kind:test 中的 test 不作为作用域；
        作用域只能跟在 3 段或 5 段的坐标之后（平台产物为 3 段）。
        """
        tag, sep, data = text.strip().partition(":")
        if not sep or not tag or not data:
            raise ConfigError(f"无效的依赖 URI: {text}")
        head, _, last = data.rpartition(":")
        if head and last in _SCOPE_NAMES and _scope_allowed(tag, data.count(":") + 1):
            data, scope = head, Scope(last)
        return cls(_parse_id(tag, data), scope)

    def __str__(self) -> str:
        return f"{self.id}:{self.scope}"


def _scope_allowed(tag: str, parts: int) -> bool:
    if tag == "mvn":
        return parts in (4, 6)
    if tag == "sys":
        return parts == 4
    return True


def _parse_id(tag: str, data: str) -> DependId:
    if tag == "mvn":
        return RepoId.parse(data)
    if tag == "sys":
        return SystemId.parse(data)
    return Source.of(tag, data)
