"""锁定相关命令"""

import click

from revpin.cli import fail
from revpin.core.config import Config
from revpin.core.exceptions import RevpinError
from revpin.services.save_service import SaveService


def register(main: click.Group) -> None:
    main.add_command(save)


@click.command()
@click.argument("packages", nargs=-1)
@click.option("--output", "-o", default="", help="清单输出路径（默认取配置 manifest_file）")
@click.pass_obj
def save(cfg: Config, packages: tuple[str, ...], output: str) -> None:
    """锁定 PACKAGES 的全部外部依赖并写入清单"""
    try:
        manifest = SaveService(cfg).save(list(packages), output=output)
    except RevpinError as e:
        raise fail(e) from e
    click.echo(f"已锁定 {len(manifest.deps)} 个依赖 -> {output or cfg.manifest_file}")
