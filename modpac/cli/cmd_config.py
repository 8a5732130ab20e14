"""CLI：配置查看与导出"""

from __future__ import annotations

import click
import yaml

from modpac.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(config)


@click.command()
@click.option("--save", "save_path", default=None, help="把当前生效的配置写入该 YAML 文件")
def config(save_path: str | None) -> None:
    """显示当前生效的配置"""
    cfg = _svc().config
    if save_path:
        cfg.save(save_path)
        click.echo(f"配置已保存: {save_path}")
        return
    click.echo(yaml.dump(cfg.to_dict(), allow_unicode=True, sort_keys=True).rstrip())
