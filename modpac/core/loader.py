"""模块加载图：执行期按模块隔离的符号/资源查找

每个模块一个 ModuleLoader，查找顺序固定为:
  自身产物 → 私有二进制依赖 → 模块依赖子图（递归，同一规则） → 共享依赖

共享依赖的加载器在进程内按绝对路径缓存，同一路径只构造一个实例，
使跨模块共享的类型在各个隔离模块中保持同一身份。
"""

from __future__ import annotations

import logging
import threading
import zipfile
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from modpac.core.dep.resolver import Depends
from modpac.core.exceptions import LoadError

logger = logging.getLogger(__name__)

DEFAULT_SYMBOL_SUFFIX = ".class"


@dataclass(frozen=True)
class Artifact:
    """一次查找命中的条目"""

    name: str
    container: Path
    entry: str

    @property
    def location(self) -> str:
        if self.container.is_dir():
            return str(self.container / self.entry)
        return f"{self.container}!/{self.entry}"


def symbol_entry(name: str, suffix: str = DEFAULT_SYMBOL_SUFFIX) -> str:
    """a.b.C -> a/b/C.class"""
    return name.replace(".", "/") + suffix


class Loader(Protocol):
    def find_symbol(self, name: str, seen: set[int] | None = None) -> Artifact | None: ...

    def find_resource(self, path: str, seen: set[int] | None = None) -> Artifact | None: ...


class ArtifactLoader:
    """在一组目录 / zip 归档中按条目路径查找"""

    def __init__(self, paths: Iterable[Path], suffix: str = DEFAULT_SYMBOL_SUFFIX) -> None:
        self.paths = list(paths)
        self.suffix = suffix
        self._indexes: dict[Path, frozenset[str]] = {}

    def _archive_index(self, path: Path) -> frozenset[str]:
        index = self._indexes.get(path)
        if index is None:
            try:
                with zipfile.ZipFile(path) as zf:
                    index = frozenset(zf.namelist())
            except (OSError, zipfile.BadZipFile) as e:
                logger.warning("无法读取归档 %s: %s", path, e)
                index = frozenset()
            self._indexes[path] = index
        return index

    def find_entry(self, name: str, entry: str) -> Artifact | None:
        for path in self.paths:
            if path.is_dir():
                if (path / entry).is_file():
                    return Artifact(name, path, entry)
            elif path.is_file():
                if entry in self._archive_index(path):
                    return Artifact(name, path, entry)
        return None

    def find_symbol(self, name: str, seen: set[int] | None = None) -> Artifact | None:
        return self.find_entry(name, symbol_entry(name, self.suffix))

    def find_resource(self, path: str, seen: set[int] | None = None) -> Artifact | None:
        return self.find_entry(path, path.lstrip("/"))

    def __repr__(self) -> str:
        return f"ArtifactLoader({[str(p) for p in self.paths]})"


class SharedLoaderCache:
    """进程级共享加载器缓存：同一规范化路径（解析 .. 与符号链接）只构造一个 ArtifactLoader"""

    def __init__(self, suffix: str = DEFAULT_SYMBOL_SUFFIX) -> None:
        self.suffix = suffix
        self._loaders: dict[Path, ArtifactLoader] = {}
        self._lock = threading.Lock()

    def get(self, path: Path) -> ArtifactLoader:
        key = Path(path).resolve()
        with self._lock:
            loader = self._loaders.get(key)
            if loader is None:
                loader = ArtifactLoader([key], self.suffix)
                self._loaders[key] = loader
                logger.debug("创建共享加载器: %s", key)
            return loader

    def __len__(self) -> int:
        with self._lock:
            return len(self._loaders)


_SHARED_LOADERS = SharedLoaderCache()


def shared_loaders() -> SharedLoaderCache:
    """进程内唯一的共享加载器缓存"""
    return _SHARED_LOADERS


class ModuleLoader:
    """单个模块的加载节点"""

    def __init__(
        self,
        module_id: str,
        own: ArtifactLoader,
        delegates: list[ModuleLoader],
        shared: list[ArtifactLoader],
    ) -> None:
        self.module_id = module_id
        self.own = own
        self.delegates = delegates
        self.shared = shared

    def _find(self, name: str, entry: str, seen: set[int]) -> Artifact | None:
        if id(self) in seen:
            return None
        seen.add(id(self))
        found = self.own.find_entry(name, entry)
        if found is not None:
            return found
        for delegate in self.delegates:
            found = delegate._find(name, entry, seen)
            if found is not None:
                return found
        for loader in self.shared:
            found = loader.find_entry(name, entry)
            if found is not None:
                return found
        return None

    def find_symbol(self, name: str, seen: set[int] | None = None) -> Artifact | None:
        entry = symbol_entry(name, self.own.suffix)
        return self._find(name, entry, set() if seen is None else seen)

    def find_resource(self, path: str, seen: set[int] | None = None) -> Artifact | None:
        return self._find(path, path.lstrip("/"), set() if seen is None else seen)

    def resolve_symbol(self, name: str) -> Artifact:
        """查找符号，整条委托链都没有时抛 LoadError（带上本模块标识）"""
        found = self.find_symbol(name)
        if found is None:
            raise LoadError(self.module_id, name)
        return found

    def resolve_resource(self, path: str) -> Artifact | None:
        return self.find_resource(path)

    def __repr__(self) -> str:
        return f"ModuleLoader({self.module_id})"


class ModuleLoadGraph:
    """由解析结果构建模块加载图，菱形依赖共享同一个节点"""

    def __init__(
        self,
        cache: SharedLoaderCache | None = None,
        suffix: str = DEFAULT_SYMBOL_SUFFIX,
    ) -> None:
        self.cache = cache if cache is not None else shared_loaders()
        self.suffix = suffix
        self._nodes: dict[int, ModuleLoader] = {}

    def build(self, depends: Depends) -> ModuleLoader:
        key = id(depends.module)
        node = self._nodes.get(key)
        if node is not None:
            return node
        module = depends.module
        own = ArtifactLoader([module.classpath(), *depends.binary_deps], self.suffix)
        delegates = [self.build(dep) for dep in depends.module_deps]
        shared = [self.cache.get(path) for path in depends.shared_deps]
        module_id = str(module.source) if module.source is not None else module.display_name()
        node = ModuleLoader(module_id, own, delegates, shared)
        self._nodes[key] = node
        return node

    def __len__(self) -> int:
        return len(self._nodes)

    def dump(self, root: ModuleLoader, indent: str = "") -> list[str]:
        """加载图文本，已出现过的节点以 (*) 标记"""
        lines: list[str] = []
        self._dump(root, indent, set(), lines)
        return lines

    def _dump(self, node: ModuleLoader, indent: str, seen: set[int], lines: list[str]) -> None:
        if id(node) in seen:
            lines.append(f"{indent}(*) {node.module_id}")
            return
        seen.add(id(node))
        lines.append(f"{indent}{node.module_id}")
        lines.extend(f"{indent}  = {p}" for p in node.own.paths)
        lines.extend(f"{indent}  ~ {s.paths[0]} (shared)" for s in node.shared)
        for delegate in node.delegates:
            self._dump(delegate, indent + "  ", seen, lines)
