"""清单（Godeps）— 锁定算法与清单读写

锁定: 从程序的导入图得到去重后的最小外部依赖集合，每个依赖带精确版本号，
      工作区有未提交修改时整体失败。
读写: 清单以 JSON 持久化，字段名与「Comment 为空时省略」属于兼容契约:

    {
        "ImportPath": "example.com/prog",
        "GoVersion": "go version go1.2 linux/amd64",
        "Deps": [
            {"ImportPath": "github.com/kr/s3", "Comment": "v1.0-3-gabc", "Rev": "..."}
        ]
    }
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import IO, Any

from revpin.core.dependency import PinnedDependency, RepoLocks, ResolvedDependency
from revpin.core.exceptions import (
    BackendError,
    CaptureError,
    ConfigError,
    DirtyWorkingTreeError,
    LoadError,
    ParseError,
    ResolutionError,
    RevpinError,
)
from revpin.core.layout import MIN_REV_LEN, SpoolLayout
from revpin.core.models import Package, RepoRoot
from revpin.core.protocols import PackageLoader, RootResolver
from revpin.core.vcs import get_backend
from revpin.utils.shell import CommandExecutor
from revpin.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)


def path_prefix_in(seen: list[str], path: str) -> bool:
    """path 是否等于 seen 中某项或位于其子路径下"""
    return any(path == p or path.startswith(p + "/") for p in seen)


@dataclass
class Manifest:
    """一个程序的锁定依赖集合"""

    import_path: str
    go_version: str = ""
    deps: list[PinnedDependency] = field(default_factory=list)

    # 以下字段不持久化，还原时由包加载器填充
    outer_root: str = field(default="", compare=False)
    outer_roots: dict[str, str] = field(default_factory=dict, compare=False, repr=False)

    # ---- 序列化 ----

    def to_dict(self) -> dict[str, Any]:
        return {
            "ImportPath": self.import_path,
            "GoVersion": self.go_version,
            "Deps": [d.to_dict() for d in self.deps],
        }

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), indent="\t", ensure_ascii=False) + "\n"

    def write_to(self, stream: IO[str]) -> int:
        return stream.write(self.dumps())

    def save(self, path: str | Path) -> None:
        atomic_write(Path(path), self.dumps())
        logger.info("清单已写入: %s (%d 个依赖)", path, len(self.deps))

    # ---- 不变式 ----

    def violations(self) -> list[str]:
        """检查最小化不变式，返回违反项描述"""
        problems: list[str] = []
        paths = [d.import_path for d in self.deps]
        for p in paths:
            if path_prefix_in([self.import_path], p):
                problems.append(f"{p} 位于程序自身 {self.import_path} 之下")
        for i, a in enumerate(paths):
            for b in paths[i + 1:]:
                if path_prefix_in([a], b) or path_prefix_in([b], a):
                    problems.append(f"{a} 与 {b} 存在包含关系")
        return problems

    # ---- 还原上下文 ----

    def attach_outer_roots(self, loader: PackageLoader) -> Manifest:
        """查询外部工作区，返回附带 outer_root 信息的新清单

        程序自身加载失败是致命错误；依赖不在外部工作区中（加载器报告错误或
        未返回结果）时其 outer_root 为空，还原时只走主远程。
        """
        paths = [self.import_path] + [d.import_path for d in self.deps]
        by_path = {p.import_path: p for p in loader.load(paths)}
        program = by_path.get(self.import_path)
        if program is None:
            raise LoadError(self.import_path, "包加载器未返回结果")
        if program.error:
            raise LoadError(self.import_path, program.error)
        roots: dict[str, str] = {self.import_path: program.root}
        for path in paths[1:]:
            pkg = by_path.get(path)
            if pkg is None or pkg.error:
                logger.debug("依赖不在外部工作区: %s (%s)", path, pkg.error if pkg else "无结果")
                roots[path] = ""
                continue
            roots[path] = pkg.root
        return replace(self, outer_root=roots[self.import_path], outer_roots=roots)

    def resolve_all(
        self,
        resolver: RootResolver,
        layout: SpoolLayout,
        *,
        executor: CommandExecutor | None = None,
        locks: RepoLocks | None = None,
    ) -> list[ResolvedDependency]:
        """逐个解析依赖的仓库根；任何一个失败立即抛出，此时尚未发生网络拉取"""
        locks = locks or RepoLocks()
        return [
            d.resolve(
                resolver, layout,
                outer_root=self.outer_roots.get(d.import_path, ""),
                executor=executor, locks=locks,
            )
            for d in self.deps
        ]


# =========================================================================
# 解析
# =========================================================================

def _require_str(obj: dict[str, Any], key: str, where: str, *, required: bool) -> str:
    value = obj.get(key)
    if value is None:
        if required:
            raise ParseError(f"{where} 缺少字段 {key}")
        return ""
    if not isinstance(value, str):
        raise ParseError(f"{where} 字段 {key} 必须是字符串")
    if required and not value:
        raise ParseError(f"{where} 字段 {key} 不能为空")
    return value


def parse_manifest(data: str | bytes) -> Manifest:
    """从 JSON 文本解析清单

    缺失的可选字段取空值；结构不合法时抛 ParseError。
    """
    try:
        raw = json.loads(data)
    except ValueError as e:
        raise ParseError(f"清单不是合法的 JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ParseError("清单顶层必须是对象")

    import_path = _require_str(raw, "ImportPath", "清单", required=True)
    go_version = _require_str(raw, "GoVersion", "清单", required=False)

    raw_deps = raw.get("Deps") or []
    if not isinstance(raw_deps, list):
        raise ParseError("Deps 必须是数组")

    deps: list[PinnedDependency] = []
    seen: set[str] = set()
    for i, item in enumerate(raw_deps):
        where = f"Deps[{i}]"
        if not isinstance(item, dict):
            raise ParseError(f"{where} 必须是对象")
        path = _require_str(item, "ImportPath", where, required=True)
        rev = _require_str(item, "Rev", where, required=True)
        comment = _require_str(item, "Comment", where, required=False)
        if len(rev) < MIN_REV_LEN:
            raise ParseError(f"{where} 版本号过短: {rev!r}")
        if path in seen:
            raise ParseError(f"{where} 导入路径重复: {path}")
        seen.add(path)
        deps.append(PinnedDependency(import_path=path, rev=rev, comment=comment))

    return Manifest(import_path=import_path, go_version=go_version, deps=deps)


def read_manifest(path: str | Path) -> Manifest:
    """读取清单文件"""
    p = Path(path)
    try:
        data = p.read_bytes()
    except FileNotFoundError as e:
        raise ConfigError(f"清单文件不存在: {p}") from e
    try:
        return parse_manifest(data)
    except ParseError as e:
        raise ParseError(f"{p}: {e}") from e


# =========================================================================
# 锁定
# =========================================================================

@dataclass
class _Candidate:
    pkg: Package
    repo_root: RepoRoot


def _inspect(cand: _Candidate, executor: CommandExecutor | None) -> PinnedDependency:
    """读取单个包的版本、脏检查和描述"""
    pkg = cand.pkg
    backend = get_backend(cand.repo_root.vcs, executor)
    rev = backend.identify(pkg.dir)
    if backend.is_dirty(pkg.dir, rev):
        raise DirtyWorkingTreeError(pkg.dir)
    comment = backend.describe(pkg.dir, rev)
    return PinnedDependency(import_path=pkg.import_path, rev=rev, comment=comment)


def capture(
    packages: list[Package],
    loader: PackageLoader,
    resolver: RootResolver,
    *,
    go_version: str = "",
    executor: CommandExecutor | None = None,
    max_workers: int = 1,
) -> Manifest:
    """从已解析的程序包集合生成清单

    packages[0] 是程序本身，其余为同一次调用中一并列出的包。
    所有候选包都会被检查完再决定成败，CaptureError.errors 包含每一个问题包；
    出错时不返回部分清单。
    """
    if not packages:
        raise CaptureError("没有需要锁定的包")
    root = packages[0]

    names = set(root.deps)
    for p in packages[1:]:
        names.add(p.import_path)
        names.update(p.deps)
    candidates = sorted(names)

    errors: list[RevpinError] = []
    selected: list[_Candidate] = []
    seen = [root.import_path]

    # 依赖排序后的遍历顺序：较短的路径先出现并吸收其子路径
    for pkg in loader.load(candidates):
        name = pkg.import_path
        if pkg.error:
            errors.append(LoadError(name, pkg.error))
            continue
        if pkg.standard or path_prefix_in(seen, name):
            continue
        try:
            repo_root = resolver.resolve(name)
        except ResolutionError as e:
            errors.append(e)
            continue
        seen.append(name)
        selected.append(_Candidate(pkg=pkg, repo_root=repo_root))

    def _one(cand: _Candidate) -> PinnedDependency | RevpinError:
        try:
            return _inspect(cand, executor)
        except (BackendError, DirtyWorkingTreeError) as e:
            return e

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        results = list(pool.map(_one, selected))

    deps: list[PinnedDependency] = []
    for r in results:
        if isinstance(r, RevpinError):
            errors.append(r)
        else:
            deps.append(r)

    if errors:
        for e in errors:
            logger.error("%s", e)
        raise CaptureError(f"锁定依赖失败: {len(errors)} 个错误", errors)

    logger.info("已锁定 %d 个依赖 (%s)", len(deps), root.import_path)
    return Manifest(import_path=root.import_path, go_version=go_version, deps=deps)
