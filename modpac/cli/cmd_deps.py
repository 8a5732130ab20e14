"""CLI：依赖查询命令"""

from __future__ import annotations

import click

from modpac.cli import _module, _package, _svc
from modpac.core.dep.models import Scope

_SCOPES = click.Choice([s.value for s in Scope if s is not Scope.EXEC])


def register(group: click.Group) -> None:
    group.add_command(depends)
    group.add_command(deptree)


@click.command()
@click.argument("ref")
@click.option("--scope", type=_SCOPES, default=Scope.MAIN.value, help="解析作用域")
def depends(ref: str, scope: str) -> None:
    """打印 <包名>#<模块名> 的扁平依赖列表（含缺失项）"""
    mod = _module(ref)
    for dep_id in _svc().resolver.resolve(mod, Scope(scope)).flatten():
        click.echo(str(dep_id))


@click.command()
@click.argument("name")
@click.option("--scope", type=_SCOPES, default=Scope.MAIN.value, help="解析作用域")
def deptree(name: str, scope: str) -> None:
    """打印包内全部模块的依赖树"""
    pkg = _package(name)
    resolver = _svc().resolver
    seen: set[int] = set()
    for mod in pkg.modules():
        for line in resolver.resolve(mod, Scope(scope)).dump("", seen):
            click.echo(line)
