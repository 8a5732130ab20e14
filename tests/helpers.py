"""测试辅助：包树生成与假的外部协作者

所有外部协作者（Maven 仓库、JDK、编译器、版本控制）都用内存假实现替代，
测试不访问网络，也不需要本机安装 javac / git。
"""

from __future__ import annotations

import threading
import zipfile
from collections import deque
from pathlib import Path
from typing import Callable

from modpac.core.dep.models import RepoId, SystemId
from modpac.core.exceptions import MissingDependencyError
from modpac.utils.shell import CommandResult


def source_url(name: str) -> str:
    return f"git:https://example.com/{name}.git"


# =========================================================================
# 假的外部协作者
# =========================================================================

class FakeMaven:
    """内存 Maven 仓库：add() 注册坐标及其传递依赖，产物写成真实的 zip"""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.paths: dict[RepoId, Path] = {}
        self.deps: dict[RepoId, list[RepoId]] = {}
        self.calls: list[list[RepoId]] = []

    def add(self, coord: str, *deps: str, entries: tuple[str, ...] = ()) -> Path:
        rid = RepoId.parse(coord)
        path = self.root / rid.group / f"{rid.artifact}-{rid.version}.{rid.kind}"
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            for entry in entries:
                zf.writestr(entry, b"")
        self.paths[rid] = path
        self.deps[rid] = [RepoId.parse(d) for d in deps]
        return path

    def resolve(self, ids: list[RepoId]) -> dict[RepoId, Path | None]:
        self.calls.append(list(ids))
        results: dict[RepoId, Path | None] = {}
        seen: set[str] = set()
        queue = deque(ids)
        while queue:
            rid = queue.popleft()
            if rid.stable_id in seen:
                continue
            seen.add(rid.stable_id)
            path = self.paths.get(rid)
            results[rid] = path
            if path is not None:
                queue.extend(self.deps.get(rid, []))
        return results


class FakeSystem:
    """平台产物解析器：只认识 add() 过的标识"""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.paths: dict[SystemId, Path] = {}

    def add(self, text: str, entries: tuple[str, ...] = ()) -> Path:
        sid = SystemId.parse(text)
        path = self.root / sid.platform / f"{sid.artifact}-{sid.version}.jar"
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            for entry in entries:
                zf.writestr(entry, b"")
        self.paths[sid] = path
        return path

    def resolve(self, id: SystemId) -> Path:
        if id not in self.paths:
            raise MissingDependencyError(f"未知的平台产物: {id}", missing=[id])
        return self.paths[id]


class FakeExecutor:
    """记录命令的执行器；returncode_for 决定每条命令的退出码"""

    def __init__(self, returncode_for: Callable[[list[str]], int] | None = None) -> None:
        self.calls: list[tuple[list[str], Path]] = []
        self.returncode_for = returncode_for or (lambda cmd: 0)
        self._lock = threading.Lock()

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str | Path = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
        capture: bool = True,
    ) -> CommandResult:
        with self._lock:
            self.calls.append((list(cmd), Path(cwd)))
        rc = self.returncode_for(cmd)
        return CommandResult(returncode=rc, stdout="", stderr="boom" if rc else "")

    def commands(self, tool: str) -> list[list[str]]:
        """第一个参数以 tool 结尾的命令"""
        return [cmd for cmd, _ in self.calls if cmd and cmd[0].endswith(tool)]


# =========================================================================
# 包树生成
# =========================================================================

def write_package(
    root: Path,
    name: str,
    *,
    depends: tuple[str, ...] | list[str] = (),
    modules: dict[str, list[str]] | None = None,
    src: bool = True,
    lines: tuple[str, ...] | list[str] = (),
) -> Path:
    """在 root 写一个包：package.spam + 可选默认模块源码目录 + 子模块"""
    root.mkdir(parents=True, exist_ok=True)
    text = [
        f"name: {name}",
        f"source: {source_url(name)}",
        "version: 1.0",
        f"descrip: {name} package",
    ]
    text += [f"depend: {d}" for d in depends]
    for mname, mdeps in (modules or {}).items():
        text.append(f"module: {mname}")
        mroot = root / mname
        (mroot / "src" / "main" / "java").mkdir(parents=True, exist_ok=True)
        (mroot / "module.spam").write_text(
            "".join(f"depend: {d}\n" for d in mdeps), encoding="utf-8",
        )
    text += list(lines)
    if src:
        (root / "src" / "main" / "java").mkdir(parents=True, exist_ok=True)
    pkg_file = root / "package.spam"
    pkg_file.write_text("\n".join(text) + "\n", encoding="utf-8")
    return pkg_file

