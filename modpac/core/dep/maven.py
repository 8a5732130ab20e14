"""Maven 仓库坐标解析

职责:
- 把 RepoId 映射到本地仓库 (~/.m2/repository) 中的产物路径
- 本地没有时依次从远程仓库下载（本地优先 + 远程回退）
- 读取 POM，沿 compile/runtime 依赖展开传递依赖

传递展开按广度优先进行，同一 stable_id 先到先得（即离根最近者胜出），
不做版本协调。
"""

from __future__ import annotations

import logging
import re
import threading
import xml.etree.ElementTree as ET
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from modpac.core.config import Config
from modpac.core.dep.models import RepoId
from modpac.core.exceptions import FetchFailure
from modpac.utils.net import download, parse_sha1, verify_sha1

logger = logging.getLogger(__name__)

_PROP_RE = re.compile(r"\$\{([^}]+)\}")

# 参与传递展开的依赖作用域
_TRANSITIVE_SCOPES = frozenset(("compile", "runtime"))

_MAX_PARENT_DEPTH = 10

Downloader = Callable[..., Path]


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(elem: ET.Element | None, name: str) -> str:
    if elem is None:
        return ""
    for child in elem:
        if _local(child.tag) == name:
            return (child.text or "").strip()
    return ""


def _child(elem: ET.Element | None, name: str) -> ET.Element | None:
    if elem is None:
        return None
    for child in elem:
        if _local(child.tag) == name:
            return child
    return None


def _children(elem: ET.Element | None, name: str) -> list[ET.Element]:
    if elem is None:
        return []
    return [c for c in elem if _local(c.tag) == name]


@dataclass
class PomDepend:
    group: str
    artifact: str
    version: str
    kind: str = "jar"
    classifier: str = ""
    scope: str = "compile"
    optional: bool = False


@dataclass
class Pom:
    """POM 中与依赖展开相关的部分（已合并父 POM）"""

    group: str
    artifact: str
    version: str
    properties: dict[str, str] = field(default_factory=dict)
    managed: dict[str, str] = field(default_factory=dict)
    depends: list[PomDepend] = field(default_factory=list)

    def expand(self, text: str) -> str:
        """替换 ${...} 属性引用，未知属性原样保留"""
        builtin = {
            "project.groupId": self.group,
            "project.artifactId": self.artifact,
            "project.version": self.version,
            "pom.version": self.version,
            "version": self.version,
        }

        def sub(m: re.Match[str]) -> str:
            key = m.group(1)
            return self.properties.get(key, builtin.get(key, m.group(0)))

        # 属性值本身也可能引用其他属性，最多展开几轮
        for _ in range(5):
            expanded = _PROP_RE.sub(sub, text)
            if expanded == text:
                break
            text = expanded
        return text

    def transitive(self) -> list[RepoId]:
        """参与传递展开的依赖坐标"""
        result: list[RepoId] = []
        for dep in self.depends:
            scope = self.expand(dep.scope) or "compile"
            if dep.optional or scope not in _TRANSITIVE_SCOPES:
                continue
            group = self.expand(dep.group)
            artifact = self.expand(dep.artifact)
            version = self.expand(dep.version) or self.managed.get(f"{group}:{artifact}", "")
            version = self.expand(version)
            if not version or "${" in version or "${" in group:
                logger.debug("跳过版本无法确定的依赖: %s:%s (%s)", group, artifact, self.artifact)
                continue
            # 版本区间一律取下界，[1.0,2.0) -> 1.0
            if version[0] in "[(":
                version = version[1:].split(",", 1)[0].rstrip("])")
            result.append(RepoId(group, artifact, version, dep.kind or "jar", dep.classifier or None))
        return result


def parse_pom(text: str | bytes, parent: Pom | None = None) -> Pom:
    """解析 POM 文本；parent 为已解析的父 POM，用于继承属性与依赖管理"""
    try:
        root = ET.fromstring(text)  # nosec B314
    except ET.ParseError as e:
        raise FetchFailure(f"POM 解析失败: {e}") from e

    parent_elem = _child(root, "parent")
    group = _child_text(root, "groupId") or _child_text(parent_elem, "groupId")
    version = _child_text(root, "version") or _child_text(parent_elem, "version")
    pom = Pom(group=group, artifact=_child_text(root, "artifactId"), version=version)

    if parent is not None:
        pom.properties.update(parent.properties)
        pom.managed.update(parent.managed)
        pom.properties["project.parent.version"] = parent.version
        pom.properties["project.parent.groupId"] = parent.group
    props = _child(root, "properties")
    if props is not None:
        for prop in props:
            pom.properties[_local(prop.tag)] = (prop.text or "").strip()

    mgmt = _child(_child(root, "dependencyManagement"), "dependencies")
    for dep in _children(mgmt, "dependency"):
        key = f"{pom.expand(_child_text(dep, 'groupId'))}:{pom.expand(_child_text(dep, 'artifactId'))}"
        pom.managed[key] = _child_text(dep, "version")

    for dep in _children(_child(root, "dependencies"), "dependency"):
        pom.depends.append(PomDepend(
            group=_child_text(dep, "groupId"),
            artifact=_child_text(dep, "artifactId"),
            version=_child_text(dep, "version"),
            kind=_child_text(dep, "type") or "jar",
            classifier=_child_text(dep, "classifier"),
            scope=_child_text(dep, "scope") or "compile",
            optional=_child_text(dep, "optional").lower() == "true",
        ))
    return pom


def parent_coord(text: str | bytes) -> RepoId | None:
    """POM 中声明的父 POM 坐标"""
    try:
        root = ET.fromstring(text)  # nosec B314
    except ET.ParseError:
        return None
    elem = _child(root, "parent")
    if elem is None:
        return None
    group, artifact, version = (
        _child_text(elem, "groupId"), _child_text(elem, "artifactId"), _child_text(elem, "version"),
    )
    if not (group and artifact and version):
        return None
    return RepoId(group, artifact, version, "pom")


class MavenResolver:
    """本地仓库 + 远程回退的坐标解析器"""

    def __init__(self, config: Config, downloader: Downloader = download) -> None:
        self.config = config
        self.m2_repo = Path(config.m2_repo)
        self._download = downloader
        self._paths: dict[RepoId, Path | None] = {}
        self._poms: dict[RepoId, Pom | None] = {}
        # 并行构建的 worker 可能同时解析，串行化下载与缓存更新
        self._lock = threading.Lock()

    # ---- 本地仓库布局 ----

    def artifact_rel(self, id: RepoId) -> str:
        suffix = f"-{id.classifier}" if id.classifier else ""
        return "/".join([
            *id.group.split("."), id.artifact, id.version,
            f"{id.artifact}-{id.version}{suffix}.{id.kind}",
        ])

    def artifact_path(self, id: RepoId) -> Path:
        return self.m2_repo / self.artifact_rel(id)

    def pom_id(self, id: RepoId) -> RepoId:
        return RepoId(id.group, id.artifact, id.version, "pom")

    # ---- 解析 ----

    def resolve(self, ids: list[RepoId]) -> dict[RepoId, Path | None]:
        """解析坐标及其传递依赖，返回有序的 {RepoId: 路径 或 None}

        直接请求的坐标总在结果中（找不到时为 None）；
        找不到的传递依赖同样以 None 返回，由调用方报告缺失。
        """
        with self._lock:
            results: dict[RepoId, Path | None] = {}
            seen: set[str] = set()
            queue: deque[RepoId] = deque(ids)
            while queue:
                id = queue.popleft()
                if id.stable_id in seen:
                    continue
                seen.add(id.stable_id)
                path = self._fetch(id)
                results[id] = path
                if path is None:
                    logger.warning("无法解析仓库依赖: %s", id)
                    continue
                pom = self._pom(id)
                if pom is not None:
                    queue.extend(d for d in pom.transitive() if d.stable_id not in seen)
            return results

    def _fetch(self, id: RepoId) -> Path | None:
        if id in self._paths:
            return self._paths[id]
        path = self.artifact_path(id)
        if not path.exists():
            path = self._download_any(self.artifact_rel(id), path)
        self._paths[id] = path
        return path

    def _download_any(self, rel: str, dest: Path) -> Path | None:
        for repo in self.config.maven_repos:
            url = repo.rstrip("/") + "/" + rel
            try:
                path = self._download(url, dest, timeout=self.config.download_timeout)
            except FetchFailure as e:
                logger.debug("仓库 %s 中没有 %s: %s", repo, rel, e)
                continue
            if self._checksum_ok(url, path):
                return path
        return None

    def _checksum_ok(self, url: str, path: Path) -> bool:
        """对照仓库提供的 .sha1 校验刚下载的文件；不一致时删除文件"""
        if not self.config.verify_checksums:
            return True
        sidecar = path.with_name(path.name + ".sha1")
        try:
            self._download(url + ".sha1", sidecar, timeout=self.config.download_timeout)
            expected = parse_sha1(sidecar.read_text(encoding="ascii", errors="replace"))
        except (FetchFailure, OSError) as e:
            logger.warning("无法获取校验和，跳过校验: %s (%s)", url, e)
            return True
        if expected is None:
            logger.warning("校验和文件格式无法识别，跳过校验: %s.sha1", url)
            return True
        try:
            verify_sha1(path, expected)
        except FetchFailure as e:
            logger.warning("%s，丢弃: %s", e, url)
            path.unlink(missing_ok=True)
            sidecar.unlink(missing_ok=True)
            return False
        return True

    def _pom(self, id: RepoId, depth: int = 0) -> Pom | None:
        pid = self.pom_id(id)
        if pid in self._poms:
            return self._poms[pid]
        pom: Pom | None = None
        path = self._fetch(pid)
        if path is not None:
            try:
                text = path.read_bytes()
                parent = None
                pcoord = parent_coord(text)
                if pcoord is not None and depth < _MAX_PARENT_DEPTH:
                    parent = self._pom(pcoord, depth + 1)
                pom = parse_pom(text, parent)
            except (OSError, FetchFailure) as e:
                logger.warning("无法读取 POM %s: %s", path, e)
        self._poms[pid] = pom
        return pom
