"""CLI：在模块的隔离加载图中运行入口"""

from __future__ import annotations

from pathlib import Path

import click

from modpac.cli import _module, _svc
from modpac.core.dep.models import Scope


def register(group: click.Group) -> None:
    group.add_command(run)


@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("ref")
@click.argument("entry")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run(ctx: click.Context, ref: str, entry: str, args: tuple[str, ...]) -> None:
    """运行 <包名>#<模块名> 中的 ENTRY 类"""
    svc = _svc()
    mod = _module(ref)
    depends = svc.resolver.resolve(mod, Scope.MAIN)
    graph = svc.load_graph()
    loader = graph.build(depends)
    if svc.config.debug:
        click.echo(f"运行 {ref} {entry} {list(args)}", err=True)
        for line in graph.dump(loader, "  "):
            click.echo(line, err=True)
    # 入口找不到时抛 LoadError，错误信息带上模块标识
    loader.resolve_symbol(entry)
    code = svc.toolchain.java(depends.classpath(), entry, list(args), cwd=Path.cwd())
    ctx.exit(code)
