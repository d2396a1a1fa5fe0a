"""依赖条目 — 单个被锁定的导入路径 + 版本

两阶段构造:
  PinnedDependency    解析清单或锁定时产生的原始记录（导入路径、版本、描述）
  ResolvedDependency  PinnedDependency.resolve() 返回的新值，附带仓库根、
                      VCS 后端、外部工作区根和缓存布局，提供路径计算与
                      拉取/检出生命周期

原始记录从不被就地修改；解析失败直接抛 ResolutionError。
"""

from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING

from revpin.core.exceptions import BackendError, UnknownRevisionError
from revpin.core.layout import SpoolLayout
from revpin.core.models import RepoRoot
from revpin.core.vcs import VcsBackend, get_backend

if TYPE_CHECKING:
    from revpin.core.protocols import RootResolver
    from revpin.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class RepoLocks:
    """按仓库根加锁（可重入），串行化同一仓库缓存上的 link / fetch"""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    @contextmanager
    def hold(self, root: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(root, threading.RLock())
        with lock:
            yield


@contextmanager
def _phase(name: str) -> Iterator[None]:
    """把错误标注上所处阶段，异常类型保持不变"""
    try:
        yield
    except UnknownRevisionError as e:
        raise UnknownRevisionError(e.import_path, e.rev, phase=name) from e
    except BackendError as e:
        raise type(e)(f"{name}: {e}") from e
    except OSError as e:
        raise BackendError(f"{name}: {e}") from e


@dataclass(frozen=True)
class PinnedDependency:
    """一个被锁定的外部包"""

    import_path: str
    rev: str
    comment: str = ""  # 版本描述，如最近的 tag + 距离

    def to_dict(self) -> dict[str, str]:
        """清单中的字段顺序: ImportPath, Comment(可省略), Rev"""
        d = {"ImportPath": self.import_path}
        if self.comment:
            d["Comment"] = self.comment
        d["Rev"] = self.rev
        return d

    def resolve(
        self,
        resolver: RootResolver,
        layout: SpoolLayout,
        *,
        outer_root: str = "",
        executor: CommandExecutor | None = None,
        locks: RepoLocks | None = None,
    ) -> ResolvedDependency:
        """绑定仓库根和后端，返回新的 ResolvedDependency"""
        repo_root = resolver.resolve(self.import_path)
        return ResolvedDependency(
            pinned=self,
            repo_root=repo_root,
            backend=get_backend(repo_root.vcs, executor),
            layout=layout,
            outer_root=outer_root,
            locks=locks or RepoLocks(),
        )


@dataclass(frozen=True)
class ResolvedDependency:
    """已绑定仓库根的依赖，提供路径计算与拉取/检出"""

    pinned: PinnedDependency
    repo_root: RepoRoot
    backend: VcsBackend
    layout: SpoolLayout
    outer_root: str = ""  # 外部工作区根目录，不存在时为空
    locks: RepoLocks | None = None

    @property
    def import_path(self) -> str:
        return self.pinned.import_path

    @property
    def rev(self) -> str:
        return self.pinned.rev

    def with_outer_root(self, outer_root: str) -> ResolvedDependency:
        return replace(self, outer_root=outer_root)

    # ---- 路径（纯计算，无 I/O） ----

    @property
    def repo_path(self) -> Path:
        """本地仓库缓存目录

        例: github.com/lib/pq/oid -> $spool/repo/github.com/lib/pq
        """
        return self.layout.repo_path(self.repo_root)

    @property
    def remote_url(self) -> str:
        return self.repo_root.repo

    @property
    def fast_remote_path(self) -> str:
        """外部工作区中已有克隆的路径，没有则为空"""
        if self.outer_root:
            return str(Path(self.outer_root) / "src" / self.repo_root.root)
        return ""

    @property
    def workdir(self) -> Path:
        """该版本中本导入路径的检出目录"""
        return self.layout.workdir(self.rev, self.import_path)

    @property
    def workdir_root(self) -> Path:
        """该版本中仓库根的检出目录"""
        return self.layout.workdir_root(self.rev, self.repo_root)

    @property
    def gopath(self) -> Path:
        """放入 GOPATH 即可让 go 工具找到此依赖的目录"""
        return self.layout.gopath(self.rev)

    # ---- 生命周期 ----

    @contextmanager
    def _repo_lock(self) -> Iterator[None]:
        if self.locks is None:
            yield
            return
        with self.locks.hold(self.repo_root.root):
            yield

    def create_repo(self, fast_remote: str, main_remote: str) -> None:
        """在 repo_path 创建空仓库并登记两个远程"""
        with self._repo_lock():
            existed = self.repo_path.exists()
            try:
                self.repo_path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise BackendError(f"无法创建仓库缓存目录 {self.repo_path}: {e}") from e
            try:
                self.backend.create(str(self.repo_path))
            except BackendError:
                if not existed:
                    shutil.rmtree(self.repo_path, ignore_errors=True)
                raise
            self.backend.link(str(self.repo_path), fast_remote, self.fast_remote_path)
            self.backend.link(str(self.repo_path), main_remote, self.remote_url)
        logger.info("仓库缓存已创建: %s", self.repo_path)

    def link(self, remote: str, url: str) -> None:
        with self._repo_lock():
            self.backend.link(str(self.repo_path), remote, url)

    def fetch_and_checkout(self, remote: str, *, fetch: bool = True) -> None:
        """拉取后检出，失败信息分别标注 fetch / checkout 阶段

        fetch=False 时只检出（本次运行已拉取过同一仓库）。
        """
        if fetch:
            with _phase("fetch"):
                self.fetch(remote)
        with _phase("checkout"):
            self.checkout()

    def fetch(self, remote: str) -> None:
        with self._repo_lock():
            logger.info("拉取 %s <- %s", self.repo_root.root, remote)
            self.backend.fetch(str(self.repo_path), remote)

    def checkout(self) -> None:
        """把 rev 检出到 workdir_root；目录已存在时直接返回"""
        target = self.workdir_root
        if target.exists():
            logger.debug("已检出，跳过: %s", target)
            return
        if not self.backend.exists(str(self.repo_path), self.rev):
            raise UnknownRevisionError(self.import_path, self.rev)
        target.mkdir(parents=True, exist_ok=True)
        logger.info("检出 %s@%s -> %s", self.import_path, self.rev, target)
        try:
            self.backend.checkout(str(target), self.rev, str(self.repo_path))
        except Exception:
            # 不留下半成品目录
            shutil.rmtree(target, ignore_errors=True)
            raise
