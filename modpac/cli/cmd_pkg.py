"""CLI：包安装、升级与查询命令"""

from __future__ import annotations

import click

from modpac.cli import _package, _svc
from modpac.core.dep.models import Source
from modpac.core.exceptions import UnknownPackageError


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(upgrade)
    group.add_command(list_pkgs)
    group.add_command(info)


@click.command()
@click.argument("refs", nargs=-1, required=True)
def install(refs: tuple[str, ...]) -> None:
    """安装包及其依赖，REF 形如 git:https://host/pkg.git

    多个 REF 共用一个安装器，共同依赖在本次命令中只处理一次。
    """
    sources = []
    for ref in refs:
        if ":" not in ref:
            raise UnknownPackageError(f"未知的包 '{ref}'，请使用 <vcs>:<url> 形式的源码引用")
        sources.append(Source.parse(ref))
    installer = _svc().installer
    for source in sources:
        if source.package_source() in installer.processed:
            # 已作为前面某个包的依赖装好
            continue
        installer.install(source)
    click.echo("安装完成！")


@click.command()
@click.argument("name")
def upgrade(name: str) -> None:
    """升级包及其依赖，并重建受影响的包"""
    pkg = _package(name)
    _svc().installer.upgrade(pkg)
    click.echo("升级完成！")


@click.command(name="list")
def list_pkgs() -> None:
    """列出已安装的包"""
    packages = sorted(_svc().repository.packages(), key=lambda p: p.name)
    if not packages:
        click.echo("没有已安装的包。")
        return
    width = max(len(p.name) for p in packages)
    for p in packages:
        click.echo(f"  {p.name:{width}s}  {p.descrip}")


def _print_info(pkg) -> None:  # type: ignore[no-untyped-def]
    click.echo(f"包: {pkg.name}")
    rows = [
        ("安装目录:", str(pkg.root)),
        ("源码:", str(pkg.source)),
        ("版本:", pkg.version),
        ("网址:", pkg.weburl),
        ("模块:", ", ".join(pkg.module_names())),
        ("描述:", pkg.descrip),
    ]
    for label, value in rows:
        click.echo(f"  {label:10s} {value}")


@click.command()
@click.argument("name", required=False)
@click.option("--all", "show_all", is_flag=True, help="显示全部已安装包")
def info(name: str | None, show_all: bool) -> None:
    """显示包的详细信息"""
    if show_all:
        for pkg in sorted(_svc().repository.packages(), key=lambda p: p.name):
            click.echo("-" * 60)
            _print_info(pkg)
            click.echo("")
        return
    if not name:
        raise click.UsageError("需要指定包名或 --all")
    _print_info(_package(name))
