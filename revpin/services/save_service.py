"""锁定服务: 加载程序包、生成清单并落盘"""

from __future__ import annotations

import logging

from revpin.core.config import Config
from revpin.core.exceptions import CaptureError, LoadError, RevpinError
from revpin.core.godeps import Manifest, capture
from revpin.core.loader import GoListLoader
from revpin.core.protocols import PackageLoader, RootResolver
from revpin.core.reporoot import get_resolver
from revpin.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class SaveService:
    """依赖锁定"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        loader: PackageLoader | None = None,
        resolver: RootResolver | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        if config is None:
            from revpin.core.config import get_config
            config = get_config()
        self.config = config
        self.executor = executor
        self.loader = loader or GoListLoader(config.go_cmd, executor=executor)
        self.resolver = resolver or get_resolver(config.probe_timeout)

    def capture(self, patterns: list[str] | None = None) -> Manifest:
        """加载 patterns 指定的包并生成清单（不落盘）"""
        pkgs = self.loader.load(patterns or ["."])
        if not pkgs:
            raise CaptureError(f"没有匹配的包: {patterns}")
        errors: list[RevpinError] = [
            LoadError(p.import_path, p.error) for p in pkgs if p.error
        ]
        if errors:
            raise CaptureError(f"加载程序包失败: {len(errors)} 个错误", errors)

        return capture(
            pkgs, self.loader, self.resolver,
            go_version=self.loader.toolchain_version(),
            executor=self.executor,
            max_workers=self.config.max_workers,
        )

    def save(self, patterns: list[str] | None = None, output: str = "") -> Manifest:
        """生成清单并写入 output（默认 config.manifest_file）"""
        manifest = self.capture(patterns)
        manifest.save(output or self.config.manifest_file)
        return manifest
