"""VCS 后端注册表"""

from __future__ import annotations

from revpin.core.exceptions import BackendError
from revpin.core.vcs.base import VcsBackend
from revpin.core.vcs.git import GitBackend
from revpin.core.vcs.hg import MercurialBackend
from revpin.utils.shell import CommandExecutor

_BACKENDS: dict[str, type[VcsBackend]] = {
    GitBackend.kind: GitBackend,
    MercurialBackend.kind: MercurialBackend,
}


def backend_kinds() -> list[str]:
    """已支持的 VCS 标识"""
    return sorted(_BACKENDS)


def get_backend(kind: str, executor: CommandExecutor | None = None) -> VcsBackend:
    """按标识构造后端实例"""
    cls = _BACKENDS.get(kind)
    if cls is None:
        raise BackendError(f"不支持的 VCS: {kind}，可用: {backend_kinds()}")
    return cls(executor)


__all__ = [
    "VcsBackend",
    "GitBackend",
    "MercurialBackend",
    "backend_kinds",
    "get_backend",
]
