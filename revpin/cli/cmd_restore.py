"""还原与查询命令"""

import os

import click

from revpin.cli import fail
from revpin.core.config import Config
from revpin.core.exceptions import RevpinError
from revpin.core.godeps import read_manifest
from revpin.core.layout import SpoolLayout
from revpin.services.restore_service import RestoreService


def register(main: click.Group) -> None:
    main.add_command(restore)
    main.add_command(list_deps)
    main.add_command(gopath)


_manifest_option = click.option(
    "--manifest", "-f", default="", help="清单路径（默认取配置 manifest_file）",
)


@click.command()
@_manifest_option
@click.pass_obj
def restore(cfg: Config, manifest: str) -> None:
    """按清单把每个依赖的锁定版本检出到缓存目录"""
    try:
        results = RestoreService(cfg).restore(manifest)
    except RevpinError as e:
        raise fail(e) from e
    for r in results:
        click.echo(f"  {r.status:8s} {r.import_path}@{r.rev[:12]}  {r.path}")


@click.command(name="list")
@_manifest_option
@click.pass_obj
def list_deps(cfg: Config, manifest: str) -> None:
    """列出清单中锁定的依赖"""
    try:
        m = read_manifest(manifest or cfg.manifest_file)
    except RevpinError as e:
        raise fail(e) from e
    click.echo(f"{m.import_path}  ({m.go_version or '-'})")
    if not m.deps:
        click.echo("没有锁定的依赖。")
        return
    for d in m.deps:
        comment = f"  ({d.comment})" if d.comment else ""
        click.echo(f"  {d.import_path:40s} {d.rev}{comment}")
    for problem in m.violations():
        click.echo(f"警告: {problem}", err=True)


@click.command(name="path")
@_manifest_option
@click.option("--all", "show_all", is_flag=True, help="列出缓存中全部版本工作区，不读清单")
@click.pass_obj
def gopath(cfg: Config, manifest: str, show_all: bool) -> None:
    """输出清单中各版本工作区，可直接用作 GOPATH"""
    if show_all:
        paths = SpoolLayout(cfg.spool_dir).list_gopaths()
        click.echo(os.pathsep.join(str(p) for p in paths))
        return
    try:
        m = read_manifest(manifest or cfg.manifest_file)
    except RevpinError as e:
        raise fail(e) from e
    paths = RestoreService(cfg).gopaths(m)
    click.echo(os.pathsep.join(str(p) for p in paths))
