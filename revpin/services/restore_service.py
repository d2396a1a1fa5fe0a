"""还原服务 — 按清单把每个依赖的锁定版本检出到 spool

流程:
  1. 读取清单
  2. 用包加载器查询外部工作区，取得可作为快速远程的本地克隆
  3. 解析全部依赖的仓库根（任何失败都发生在网络拉取之前）
  4. 逐个依赖: 已检出则跳过；否则按需创建仓库缓存、拉取、检出

同一仓库根在一次运行中最多拉取一次；版本已在缓存中时不拉取。
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from revpin.core.config import Config
from revpin.core.dependency import RepoLocks, ResolvedDependency
from revpin.core.exceptions import (
    BackendError,
    RestoreError,
    RevpinError,
    UnknownRevisionError,
)
from revpin.core.godeps import Manifest, read_manifest
from revpin.core.layout import SpoolLayout
from revpin.core.loader import GoListLoader
from revpin.core.protocols import PackageLoader, RootResolver
from revpin.core.reporoot import get_resolver
from revpin.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


@dataclass
class RestoreResult:
    """单个依赖的还原结果"""

    import_path: str
    rev: str
    status: str  # "restored", "skipped", "error"
    path: str = ""
    remote: str = ""
    message: str = ""
    error: RevpinError | None = field(default=None, repr=False, compare=False)


class RestoreService:
    """依赖还原"""

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
        self.layout = SpoolLayout(config.spool_dir)
        self.executor = executor
        self.loader = loader or GoListLoader(config.go_cmd, executor=executor)
        self.resolver = resolver or get_resolver(config.probe_timeout)
        self._locks = RepoLocks()
        self._fetched: set[tuple[str, str]] = set()
        self._fetched_guard = threading.Lock()

    # ---- 入口 ----

    def restore(self, manifest_path: str = "") -> list[RestoreResult]:
        """读取清单文件并还原"""
        manifest = read_manifest(manifest_path or self.config.manifest_file)
        return self.restore_manifest(manifest)

    def restore_manifest(self, manifest: Manifest) -> list[RestoreResult]:
        """还原清单中的全部依赖，按清单顺序返回结果

        Raises:
            LoadError / ResolutionError: 网络拉取开始前的失败，立即抛出
            RestoreError: 一个或多个依赖拉取/检出失败
        """
        if not manifest.deps:
            logger.info("清单没有依赖，无需还原: %s", manifest.import_path)
            return []

        resolved = self.prepare(manifest)

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            results = list(pool.map(self._restore_one, resolved))

        failed = {r.import_path: r.error for r in results if r.error is not None}
        if failed:
            raise RestoreError(f"还原失败: {len(failed)}/{len(results)} 个依赖", failed)

        done = sum(1 for r in results if r.status == "restored")
        logger.info("还原完成: %d 个检出, %d 个已存在", done, len(results) - done)
        return results

    def prepare(self, manifest: Manifest) -> list[ResolvedDependency]:
        """附加外部工作区信息并解析全部依赖的仓库根"""
        manifest = manifest.attach_outer_roots(self.loader)
        return manifest.resolve_all(
            self.resolver, self.layout, executor=self.executor, locks=self._locks,
        )

    def gopaths(self, manifest: Manifest) -> list[Path]:
        """清单中各依赖的版本工作区（去重，保持清单顺序）"""
        out: list[Path] = []
        for d in manifest.deps:
            p = self.layout.gopath(d.rev)
            if p not in out:
                out.append(p)
        return out

    # ---- 单个依赖 ----

    def _restore_one(self, dep: ResolvedDependency) -> RestoreResult:
        result = RestoreResult(import_path=dep.import_path, rev=dep.rev, status="restored",
                               path=str(dep.workdir))
        if dep.workdir.exists():
            result.status = "skipped"
            logger.info("已存在，跳过: %s@%s", dep.import_path, dep.rev)
            return result
        try:
            result.remote = self._download(dep)
        except RevpinError as e:
            result.status = "error"
            result.message = str(e)
            result.error = e
            logger.error("还原失败 %s@%s: %s", dep.import_path, dep.rev, e)
        return result

    def _download(self, dep: ResolvedDependency) -> str:
        """确保仓库缓存存在并检出，返回实际使用的远程名"""
        fast, main = self.config.fast_remote, self.config.main_remote
        with self._locks.hold(dep.repo_root.root):
            if not dep.backend.is_repo(str(dep.repo_path)):
                # 包括上次运行中断后留下的空目录
                dep.create_repo(fast, main)
            else:
                # 外部工作区在不同运行之间可能变化
                dep.link(fast, dep.fast_remote_path)
                dep.link(main, dep.remote_url)

        if dep.backend.exists(str(dep.repo_path), dep.rev):
            dep.fetch_and_checkout(main, fetch=False)
            return ""

        if dep.fast_remote_path:
            try:
                self._fetch_and_checkout(dep, fast)
                return fast
            except (BackendError, UnknownRevisionError) as e:
                logger.warning("快速远程失败，改用 %s: %s (%s)", main, dep.import_path, e)
        self._fetch_and_checkout(dep, main)
        return main

    def _fetch_and_checkout(self, dep: ResolvedDependency, remote: str) -> None:
        key = (dep.repo_root.root, remote)
        with self._locks.hold(dep.repo_root.root):
            with self._fetched_guard:
                need_fetch = key not in self._fetched
            dep.fetch_and_checkout(remote, fetch=need_fetch)
            with self._fetched_guard:
                self._fetched.add(key)
