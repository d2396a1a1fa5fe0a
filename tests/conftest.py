"""共享测试替身: 假包加载器 / 假仓库根解析器 / 内存 VCS / 假命令执行器

内存 VCS (FakeBackend) 以 "fake" 标识注册到后端表，所有实例共享同一个
FakeWorld，测试可以直接摆放工作区状态和上游历史，并检查调用记录。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from revpin.core import vcs as vcs_mod
from revpin.core.exceptions import BackendError, NetworkError, ResolutionError
from revpin.core.models import Package, RepoRoot
from revpin.core.vcs.base import VcsBackend
from revpin.utils.shell import CommandResult

# =========================================================================
# 包加载器 / 解析器
# =========================================================================


class FakeLoader:
    """按导入路径查表的包加载器"""

    def __init__(self, packages: list[Package] | None = None, version: str = "go1.2") -> None:
        self.packages = {p.import_path: p for p in packages or []}
        self.version = version
        self.calls: list[list[str]] = []

    def add(self, import_path: str, **kwargs: object) -> Package:
        pkg = Package(import_path=import_path, **kwargs)  # type: ignore[arg-type]
        self.packages[import_path] = pkg
        return pkg

    def load(self, import_paths: list[str]) -> list[Package]:
        self.calls.append(list(import_paths))
        out = []
        for p in import_paths:
            out.append(self.packages.get(p) or Package(import_path=p, error=f"cannot find package {p}"))
        return out

    def toolchain_version(self) -> str:
        return self.version


class FakeResolver:
    """按最长前缀匹配仓库根的解析器"""

    def __init__(self, roots: list[RepoRoot] | None = None) -> None:
        self.roots = list(roots or [])
        self.calls: list[str] = []

    def add(self, root: str, repo: str = "", vcs: str = "fake") -> RepoRoot:
        rr = RepoRoot(root=root, repo=repo or f"https://{root}", vcs=vcs)
        self.roots.append(rr)
        return rr

    def resolve(self, import_path: str) -> RepoRoot:
        self.calls.append(import_path)
        best = [rr for rr in self.roots if rr.covers(import_path)]
        if not best:
            raise ResolutionError(import_path, "未登记")
        return max(best, key=lambda rr: len(rr.root))


# =========================================================================
# 内存 VCS
# =========================================================================


@dataclass
class FakeWorld:
    # 工作区目录 -> 状态
    worktrees: dict[str, dict] = field(default_factory=dict)
    # 远程 URL -> 该远程拥有的版本
    upstream: dict[str, set[str]] = field(default_factory=dict)
    # 仓库缓存目录 -> {"remotes": {...}, "revs": set()}
    repos: dict[str, dict] = field(default_factory=dict)
    # 不可达的远程 URL
    offline: set[str] = field(default_factory=set)
    calls: list[tuple] = field(default_factory=list)

    def worktree(self, directory: str | Path, rev: str, *, dirty: bool = False, describe: str = "") -> None:
        self.worktrees[str(directory)] = {"rev": rev, "dirty": dirty, "describe": describe}

    def count(self, op: str) -> int:
        return sum(1 for c in self.calls if c[0] == op)


class FakeBackend(VcsBackend):
    kind = "fake"
    cmd = "fake"
    world = FakeWorld()

    def identify(self, directory: str) -> str:
        self.world.calls.append(("identify", directory))
        wt = self.world.worktrees.get(directory)
        if wt is None:
            raise BackendError(f"not a fake repository: {directory}")
        return wt["rev"]

    def is_dirty(self, directory: str, rev: str) -> bool:
        self.world.calls.append(("is_dirty", directory))
        wt = self.world.worktrees.get(directory)
        return True if wt is None else wt["dirty"]

    def describe(self, directory: str, rev: str) -> str:
        wt = self.world.worktrees.get(directory) or {}
        return wt.get("describe", "")

    def is_repo(self, directory: str) -> bool:
        return directory in self.world.repos

    def create(self, directory: str) -> None:
        self.world.calls.append(("create", directory))
        if directory in self.world.repos:
            raise BackendError(f"already a repository: {directory}")
        self._ensure_empty(directory)
        self.world.repos[directory] = {"remotes": {}, "revs": set()}
        (Path(directory) / "FAKE_REPO").write_text("")

    def link(self, directory: str, remote: str, url: str) -> None:
        self.world.calls.append(("link", directory, remote, url))
        if not url:
            return
        self.world.repos[directory]["remotes"][remote] = url

    def fetch(self, directory: str, remote: str) -> None:
        self.world.calls.append(("fetch", directory, remote))
        repo = self.world.repos[directory]
        url = repo["remotes"].get(remote)
        if url is None:
            raise BackendError(f"unknown remote {remote}")
        if url in self.world.offline:
            raise NetworkError(f"could not resolve host for {url}")
        repo["revs"] |= self.world.upstream.get(url, set())

    def exists(self, directory: str, rev: str) -> bool:
        repo = self.world.repos.get(directory)
        return repo is not None and rev in repo["revs"]

    def checkout(self, workdir: str, rev: str, source_dir: str) -> None:
        self.world.calls.append(("checkout", workdir, rev))
        if rev not in self.world.repos[source_dir]["revs"]:
            raise BackendError(f"unknown revision {rev}")
        (Path(workdir) / "REV").write_text(rev)


@pytest.fixture()
def fake_world(monkeypatch: pytest.MonkeyPatch) -> FakeWorld:
    """注册 fake 后端并返回一个全新的内存 VCS 世界"""
    world = FakeWorld()
    monkeypatch.setattr(FakeBackend, "world", world)
    monkeypatch.setitem(vcs_mod._BACKENDS, "fake", FakeBackend)
    return world


@pytest.fixture()
def fake_loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture()
def fake_resolver() -> FakeResolver:
    return FakeResolver()


# =========================================================================
# 命令执行器
# =========================================================================


class FakeExecutor:
    """按命令前缀返回预置结果的执行器，记录每次调用"""

    def __init__(self) -> None:
        self.responses: list[tuple[tuple[str, ...], CommandResult]] = []
        self.calls: list[tuple[list[str], str, dict | None]] = []

    def on(self, prefix: tuple[str, ...], *, rc: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.responses.append((prefix, CommandResult(rc, stdout, stderr)))

    def execute(self, args: list[str], *, cwd: str = ".", env: dict[str, str] | None = None) -> CommandResult:
        self.calls.append((list(args), cwd, env))
        for prefix, result in self.responses:
            if tuple(args[: len(prefix)]) == prefix:
                return result
        return CommandResult(0, "", "")


@pytest.fixture()
def fake_executor() -> FakeExecutor:
    return FakeExecutor()
