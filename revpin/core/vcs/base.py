"""VCS 后端基类

所有版本控制相关逻辑都收敛在后端实现里，锁定、还原、缓存布局
对具体 VCS 一无所知。新增一种 VCS 只需实现本类并注册到 vcs/__init__.py，
再在 reporoot.py 中加上对应的识别规则。
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from revpin.core.exceptions import BackendError, NetworkError
from revpin.utils.shell import CommandExecutor, CommandResult, get_executor

logger = logging.getLogger(__name__)

# stderr 中出现这些片段时视为传输层失败
_TRANSPORT_MARKERS = (
    "could not resolve host",
    "unable to access",
    "connection refused",
    "connection timed out",
    "network is unreachable",
    "could not read from remote repository",
    "abort: error:",
    "http error",
)


class VcsBackend(ABC):
    """VCS 后端能力集"""

    kind: str = ""
    cmd: str = ""

    def __init__(self, executor: CommandExecutor | None = None) -> None:
        self._executor = executor

    @property
    def executor(self) -> CommandExecutor:
        return self._executor or get_executor()

    # ---- 子进程辅助 ----

    def _exec(
        self, directory: str | Path, *args: str, env: dict[str, str] | None = None,
    ) -> CommandResult:
        argv = [self.cmd, *args]
        logger.debug("%s (cwd=%s)", " ".join(argv), directory)
        return self.executor.execute(argv, cwd=str(directory), env=env)

    def _run(
        self, directory: str | Path, *args: str, env: dict[str, str] | None = None,
    ) -> str:
        """执行命令，失败抛 BackendError，返回 stdout"""
        r = self._exec(directory, *args, env=env)
        if not r.success:
            raise BackendError(
                f"{self.cmd} {' '.join(args)} 失败 (rc={r.returncode}, dir={directory}): "
                f"{r.stderr.strip()[:500]}"
            )
        return r.stdout

    def _raise_fetch_error(self, directory: str | Path, remote: str, r: CommandResult) -> None:
        msg = (
            f"{self.cmd} 从 {remote} 拉取失败 (rc={r.returncode}, dir={directory}): "
            f"{r.stderr.strip()[:500]}"
        )
        lowered = r.stderr.lower()
        if any(marker in lowered for marker in _TRANSPORT_MARKERS):
            raise NetworkError(msg)
        raise BackendError(msg)

    @staticmethod
    def _ensure_empty(directory: str | Path) -> None:
        p = Path(directory)
        if p.exists() and any(p.iterdir()):
            raise BackendError(f"目录非空，无法创建仓库: {p}")

    # ---- 能力集 ----

    @abstractmethod
    def identify(self, directory: str) -> str:
        """当前检出的版本号；目录不是本类型仓库时抛 BackendError"""

    @abstractmethod
    def is_dirty(self, directory: str, rev: str) -> bool:
        """工作区相对 rev 是否有未提交修改；检测失败一律视为脏"""

    @abstractmethod
    def describe(self, directory: str, rev: str) -> str:
        """版本的可读描述，取不到时返回空字符串"""

    @abstractmethod
    def is_repo(self, directory: str) -> bool:
        """directory 是否已是本类型的仓库缓存（空目录或残留目录返回 False）"""

    @abstractmethod
    def create(self, directory: str) -> None:
        """在空目录中初始化仓库"""

    @abstractmethod
    def link(self, directory: str, remote: str, url: str) -> None:
        """以 remote 名登记 url；同名同 URL 重复登记静默成功"""

    @abstractmethod
    def fetch(self, directory: str, remote: str) -> None:
        """从已登记的 remote 拉取历史"""

    @abstractmethod
    def exists(self, directory: str, rev: str) -> bool:
        """rev 是否已在本地历史中"""

    @abstractmethod
    def checkout(self, workdir: str, rev: str, source_dir: str) -> None:
        """从 source_dir 的历史中把 rev 的文件树展开到 workdir"""
