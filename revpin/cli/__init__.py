"""revpin 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import dataclasses
import os

import click

from revpin import __version__
from revpin.core.config import init_config
from revpin.core.exceptions import RevpinError
from revpin.utils.logger import setup_logging


def fail(e: RevpinError) -> click.ClickException:
    """把业务异常转换为 CLI 错误（附带逐项明细）"""
    lines = [f"[{e.code}] {e}"]
    lines.extend(f"  - {d}" for d in getattr(e, "details", []))
    return click.ClickException("\n".join(lines))


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default="revpin.yml", help="配置文件路径")
@click.option("--spool", default="", help="覆盖缓存根目录")
@click.option("--workers", "-j", default=0, type=int, help="并行数（覆盖配置）")
@click.pass_context
def main(ctx: click.Context, config_path: str, spool: str, workers: int) -> None:
    """revpin - 依赖版本锁定与源码还原"""
    setup_logging(
        level=os.getenv("REVPIN_LOG_LEVEL", "INFO"),
        json_output=os.getenv("REVPIN_LOG_JSON", "") == "1",
    )
    try:
        cfg = init_config(config_path)
        overrides = {}
        if spool:
            overrides["spool_dir"] = spool
        if workers:
            overrides["max_workers"] = workers
        if overrides:
            cfg = dataclasses.replace(cfg, **overrides)
    except RevpinError as e:
        raise fail(e) from e
    ctx.obj = cfg


# 注册各领域子命令
from revpin.cli.cmd_save import register as _reg_save  # noqa: E402
from revpin.cli.cmd_restore import register as _reg_restore  # noqa: E402

_reg_save(main)
_reg_restore(main)
