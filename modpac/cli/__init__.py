"""modpac 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
正常输出走 stdout，诊断走 stderr；任何 ModpacError 都以退出码 255 结束。
"""

import logging
import signal
from typing import Any

import click

from modpac import __version__
from modpac.core.config import DEFAULT_CONFIG_FILE, init_config
from modpac.core.dep.models import DEFAULT_MODULE
from modpac.core.exceptions import ModpacError, UnknownPackageError
from modpac.services.container import ServiceContainer, get_container, set_container
from modpac.utils.logger import setup_logging_from_env

logger = logging.getLogger(__name__)

FAILURE_EXIT = 255


def _exit_on_signal(signum: int, _frame: Any) -> None:
    raise SystemExit(128 + signum)


def install_signal_handlers() -> None:
    """SIGTERM 转为 SystemExit，使 finally 与 atexit 中的临时目录清理照常执行"""
    signal.signal(signal.SIGTERM, _exit_on_signal)


def _svc() -> Any:
    """获取全局服务容器的快捷方式"""
    return get_container()


def _package(name: str) -> Any:
    """按名称查找已安装的包"""
    pkg = _svc().repository.package_by_name(name)
    if pkg is None:
        raise UnknownPackageError(f"未知的包: {name}")
    return pkg


def _module(ref: str) -> Any:
    """解析 <包名>[#模块名] 引用，缺省为默认模块"""
    pkg_name, _, mod_name = ref.partition("#")
    pkg = _package(pkg_name)
    mod = pkg.module(mod_name or DEFAULT_MODULE)
    if mod is None:
        raise UnknownPackageError(f"包 {pkg_name} 中没有模块: {mod_name or DEFAULT_MODULE}")
    return mod


class ModpacGroup(click.Group):
    """统一处理业务异常：输出到 stderr 并以 255 退出"""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except ModpacError as e:
            logger.debug("命令失败", exc_info=True)
            click.echo(f"错误: {e}", err=True)
            failures = getattr(e, "failures", None) or []
            for message, cause in failures:
                click.echo(f"  {message}: {cause}", err=True)
            ctx.exit(FAILURE_EXIT)


@click.group(cls=ModpacGroup)
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=DEFAULT_CONFIG_FILE,
              envvar="MODPAC_CONFIG", help="配置文件路径")
@click.option("--debug", is_flag=True, envvar="MODPAC_DEBUG", help="输出调试日志")
@click.pass_context
def main(ctx: click.Context, config_path: str, debug: bool) -> None:
    """modpac - 模块化运行时的包管理器"""
    setup_logging_from_env(debug)
    # 测试可通过 obj 注入预先构造的容器
    if isinstance(ctx.obj, ServiceContainer):
        set_container(ctx.obj)
        return
    cfg = init_config(config_path)
    if debug:
        cfg.debug = True
    set_container(ServiceContainer(cfg))


# 注册各领域子命令
from modpac.cli.cmd_pkg import register as _reg_pkg  # noqa: E402
from modpac.cli.cmd_build import register as _reg_build  # noqa: E402
from modpac.cli.cmd_deps import register as _reg_deps  # noqa: E402
from modpac.cli.cmd_run import register as _reg_run  # noqa: E402
from modpac.cli.cmd_config import register as _reg_config  # noqa: E402

_reg_pkg(main)
_reg_build(main)
_reg_deps(main)
_reg_run(main)
_reg_config(main)


def run() -> None:
    """控制台入口"""
    install_signal_handlers()
    main()
