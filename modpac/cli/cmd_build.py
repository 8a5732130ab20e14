"""CLI：构建、清理与全量重建命令"""

from __future__ import annotations

import click

from modpac.cli import _package, _svc
from modpac.core.scheduler import BuildScheduler, workers_for


def register(group: click.Group) -> None:
    group.add_command(build)
    group.add_command(clean)
    group.add_command(rebuild)


def _targets(name: str, deps: bool) -> list:  # type: ignore[type-arg]
    pkg = _package(name)
    return _svc().repository.package_depends(pkg) if deps else [pkg]


@click.command()
@click.argument("name")
@click.option("--deps", is_flag=True, help="同时构建其依赖的包")
def build(name: str, deps: bool) -> None:
    """清理并构建包"""
    builder = _svc().builder
    for pkg in _targets(name, deps):
        builder.build(pkg)
        click.echo(f"已构建: {pkg.name}")


@click.command()
@click.argument("name")
@click.option("--deps", is_flag=True, help="同时清理其依赖的包")
def clean(name: str, deps: bool) -> None:
    """清理包的构建产物"""
    builder = _svc().builder
    for pkg in _targets(name, deps):
        builder.clean(pkg)
        click.echo(f"已清理: {pkg.name}")


@click.command()
@click.option("--from", "from_pkg", default=None, help="从该包开始继续重建，之前的包视为已构建")
@click.option("--workers", "-j", default=0, help="并行数（默认按 CPU 数计算）")
def rebuild(from_pkg: str | None, workers: int) -> None:
    """按依赖顺序并行重建全部已安装的包"""
    svc = _svc()
    packages = svc.repository.topo_packages()
    count = workers_for(override=workers or svc.config.max_workers)
    click.echo(f"最多并行构建 {count} 个包", err=True)
    scheduler = BuildScheduler(packages, svc.builder.build, count, resume_from=from_pkg)
    built = scheduler.run()
    click.echo(f"已构建 {len(built)} 个包")
