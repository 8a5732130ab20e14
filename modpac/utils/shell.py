"""外部命令调用

javac / scalac / jar / java 以及 git / hg / svn 都经由 CommandExecutor 执行。
构建器和版本控制驱动只依赖这个协议，测试注入记录命令的假执行器即可，
不需要本机装有 JDK 或版本控制客户端。
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from modpac.core.exceptions import BuildFailure, ModpacError

logger = logging.getLogger(__name__)

# 失败时异常消息里保留的输出长度
MAX_DETAIL = 2000


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def detail(self) -> str:
        """用于错误报告的输出：编译器把诊断写在 stderr，个别工具写在 stdout"""
        return (self.stderr or self.stdout)[:MAX_DETAIL]


class CommandExecutor(Protocol):
    """执行一条参数列表形式的命令

    capture=False 时子进程直接继承当前进程的标准输入输出（用于 modpac run），
    返回结果中 stdout / stderr 为空。
    """

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str | Path = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
        capture: bool = True,
    ) -> CommandResult: ...


class LocalExecutor:
    """本机子进程"""

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str | Path = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
        capture: bool = True,
    ) -> CommandResult:
        r = subprocess.run(
            cmd, cwd=str(cwd), env=env, check=False, timeout=timeout,
            capture_output=capture, text=capture,
        )
        if not capture:
            return CommandResult(r.returncode, "", "")
        return CommandResult(r.returncode, r.stdout, r.stderr)


_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    return _executor


def set_executor(executor: CommandExecutor) -> None:
    """替换进程默认执行器；组件构造时传入的执行器优先"""
    global _executor  # noqa: PLW0603
    _executor = executor


def run_cmd(
    cmd: list[str],
    *,
    cwd: str | Path = ".",
    label: str = "cmd",
    executor: CommandExecutor | None = None,
    error_cls: type[ModpacError] = BuildFailure,
    timeout: int | None = None,
) -> CommandResult:
    """执行命令，无法启动、超时或非零退出都抛 error_cls

    label 出现在日志和异常消息里，如 "Java 编译失败 (rc=1): ..."。
    """
    logger.debug("  %s: %s (cwd=%s)", label, " ".join(cmd), cwd)
    runner = executor if executor is not None else get_executor()
    try:
        r = runner.execute(cmd, cwd=cwd, timeout=timeout)
    except OSError as e:
        raise error_cls(f"{label}失败: 无法执行 {cmd[0]}: {e}") from e
    except subprocess.TimeoutExpired as e:
        raise error_cls(f"{label}失败: {timeout} 秒内未完成") from e
    if not r.success:
        raise error_cls(f"{label}失败 (rc={r.returncode}): {r.detail}")
    return r
