"""编译工具链：javac / scalac / kotlinc / jar 调用

所有外部命令都经由 CommandExecutor 协议执行，测试中可以替换为记录命令的假实现。
Scala 与 Kotlin 编译器本身作为仓库依赖解析，版本与模块依赖中的标准库保持一致。
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from modpac.core.config import Config
from modpac.core.dep.models import RepoId
from modpac.core.dep.resolver import RepoResolver
from modpac.core.exceptions import BuildFailure, MissingDependencyError
from modpac.utils.shell import CommandExecutor, get_executor, run_cmd

logger = logging.getLogger(__name__)

SCALA_MAIN = "scala.tools.nsc.Main"
KOTLIN_MAIN = "org.jetbrains.kotlin.cli.jvm.K2JVMCompiler"


def find_java_home(configured: str) -> Path | None:
    """配置的 JAVA_HOME 可能指向 JRE 子目录，优先取其上一级的 JDK"""
    if not configured:
        return None
    jre_home = Path(configured)
    for home in (jre_home.parent, jre_home):
        bin_dir = home / "bin"
        if (bin_dir / "javac").exists() or (bin_dir / "javac.exe").exists():
            return home
    for home in (jre_home.parent, jre_home):
        if (home / "bin" / "java").exists() or (home / "bin" / "java.exe").exists():
            return home
    raise BuildFailure(f"无法在 {jre_home} 或 {jre_home.parent} 中找到 java")


def collect_sources(root: Path, src_dir: Path, suffix: str) -> list[str]:
    """src_dir 下所有以 suffix 结尾的普通文件，路径相对于 root"""
    found: list[str] = []
    for dirpath, _dirs, files in os.walk(src_dir):
        for name in sorted(files):
            path = Path(dirpath) / name
            if name.endswith(suffix) and path.is_file() and not path.is_symlink():
                found.append(os.path.relpath(path, root))
    return sorted(found)


class Toolchain:
    """JVM 编译工具链"""

    def __init__(
        self,
        config: Config,
        maven: RepoResolver,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.config = config
        self.maven = maven
        self.executor = executor
        self._java_home: Path | None = None

    @property
    def java_home(self) -> Path | None:
        if self._java_home is None:
            self._java_home = find_java_home(self.config.java_home)
        return self._java_home

    def tool(self, name: str) -> str:
        """JDK 中的命令；未配置 JAVA_HOME 时依赖 PATH"""
        home = self.java_home
        return str(home / "bin" / name) if home is not None else name

    def classpath_str(self, paths: Iterable[Path | str]) -> str:
        return self.config.path_sep.join(str(p) for p in paths)

    def compiler_classpath(self, coord: str) -> list[Path]:
        """把编译器坐标解析为其完整类路径"""
        resolved = self.maven.resolve([RepoId.parse(coord)])
        missing = [i for i, p in resolved.items() if p is None]
        if missing or not resolved:
            raise MissingDependencyError(f"无法解析编译器: {coord}", missing=missing)
        return [p for p in resolved.values() if p is not None]

    def _run(self, cmd: list[str], cwd: Path, label: str) -> None:
        run_cmd(cmd, cwd=cwd, label=label, executor=self.executor)

    def javac(
        self, cwd: Path, target: str, classpath: list[str], opts: list[str], sources: list[str],
    ) -> None:
        cmd = [self.tool("javac"), *opts, "-d", target]
        if classpath:
            cmd += ["-cp", self.classpath_str(classpath)]
        self._run(cmd + sources, cwd, "Java 编译")

    def scalac(
        self, cwd: Path, version: str, target: str, classpath: list[str],
        opts: list[str], sources: list[str],
    ) -> None:
        compiler = self.compiler_classpath(f"org.scala-lang:scala-compiler:{version}")
        cmd = [self.tool("java"), "-cp", self.classpath_str(compiler), SCALA_MAIN,
               "-d", target, *opts]
        if classpath:
            cmd += ["-classpath", self.classpath_str(classpath)]
        self._run(cmd + sources, cwd, "Scala 编译")

    def kotlinc(
        self, cwd: Path, version: str, target: str, classpath: list[str], sources: list[str],
    ) -> None:
        compiler = self.compiler_classpath(f"org.jetbrains.kotlin:kotlin-compiler:{version}")
        cmd = [self.tool("java"), "-cp", self.classpath_str(compiler), KOTLIN_MAIN,
               "-d", target]
        if classpath:
            cmd += ["-cp", self.classpath_str(classpath)]
        self._run(cmd + sources, cwd, "Kotlin 编译")

    def jar(self, source_dir: Path, target_jar: Path) -> None:
        """把 source_dir 打包为 target_jar；旧 jar 先改名为 old-<name>，避免截断正在使用的文件"""
        if target_jar.exists():
            target_jar.replace(target_jar.with_name(f"old-{target_jar.name}"))
        self._run([self.tool("jar"), "-cf", str(target_jar), "."], source_dir, "打包 jar")

    def java(self, classpath: list[Path], main: str, args: list[str], cwd: Path) -> int:
        """以继承的标准输入输出运行 main，返回退出码"""
        cmd = [self.tool("java"), "-cp", self.classpath_str(classpath), main, *args]
        logger.debug("运行: %s", " ".join(cmd))
        try:
            result = (self.executor or get_executor()).execute(cmd, cwd=cwd, capture=False)
        except OSError as e:
            raise BuildFailure(f"无法启动 java: {e}") from e
        return result.returncode
