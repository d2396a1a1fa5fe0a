"""锁定算法测试: 去重、脏检查、错误收集"""

from __future__ import annotations

import pytest

from revpin.core.exceptions import CaptureError, DirtyWorkingTreeError, LoadError, ResolutionError
from revpin.core.godeps import capture, path_prefix_in
from revpin.core.models import Package

REV_A = "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
REV_B = "bbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"


def _program(fake_loader, fake_resolver, fake_world) -> Package:
    """P 导入 P/sub 和 lib/a；lib/a 导入 lib/a/util"""
    root = fake_loader.add("P", dir="/ws/src/P", deps=["P/sub", "lib/a", "lib/a/util", "fmt"])
    fake_loader.add("P/sub", dir="/ws/src/P/sub", deps=["fmt"])
    fake_loader.add("fmt", dir="/go/src/fmt", standard=True)
    fake_loader.add("lib/a", dir="/ws/src/lib/a", deps=["lib/a/util"])
    fake_loader.add("lib/a/util", dir="/ws/src/lib/a/util")
    fake_resolver.add("lib/a")
    fake_world.worktree("/ws/src/lib/a", REV_A, describe="v1.0-2-gaaaa")
    fake_world.worktree("/ws/src/lib/a/util", REV_A)
    return root


class TestPathPrefixIn:
    @pytest.mark.parametrize(("seen", "path", "expected"), [
        (["lib/a"], "lib/a", True),
        (["lib/a"], "lib/a/util", True),
        (["lib/a"], "lib/ab", False),
        (["lib/a"], "lib/a-b", False),
        (["lib/a", "P"], "P/sub", True),
        ([], "x", False),
    ])
    def test_prefix(self, seen: list[str], path: str, expected: bool) -> None:
        assert path_prefix_in(seen, path) is expected


class TestCapture:
    def test_scenario_subpaths_absorbed(self, fake_loader, fake_resolver, fake_world) -> None:
        root = _program(fake_loader, fake_resolver, fake_world)
        m = capture([root], fake_loader, fake_resolver, go_version="go1.2")

        assert m.import_path == "P"
        assert m.go_version == "go1.2"
        assert [d.import_path for d in m.deps] == ["lib/a"]
        assert m.deps[0].rev == REV_A
        assert m.deps[0].comment == "v1.0-2-gaaaa"
        assert m.violations() == []

    def test_candidates_sorted_and_deduplicated(self, fake_loader, fake_resolver, fake_world) -> None:
        root = _program(fake_loader, fake_resolver, fake_world)
        extra = fake_loader.packages["lib/a"]
        capture([root, extra], fake_loader, fake_resolver)
        loaded = fake_loader.calls[-1]
        assert loaded == sorted(set(loaded))

    def test_standard_library_skipped(self, fake_loader, fake_resolver, fake_world) -> None:
        root = fake_loader.add("P", deps=["fmt", "net/http"])
        fake_loader.add("fmt", standard=True)
        fake_loader.add("net/http", standard=True)
        m = capture([root], fake_loader, fake_resolver)
        assert m.deps == []
        assert fake_resolver.calls == []

    def test_dirty_tree_fails_without_manifest(self, fake_loader, fake_resolver, fake_world) -> None:
        root = _program(fake_loader, fake_resolver, fake_world)
        fake_world.worktree("/ws/src/lib/a", REV_A, dirty=True)

        with pytest.raises(CaptureError) as exc:
            capture([root], fake_loader, fake_resolver)
        assert any(isinstance(e, DirtyWorkingTreeError) for e in exc.value.errors)
        assert "/ws/src/lib/a" in exc.value.details[0]

    def test_all_errors_collected(self, fake_loader, fake_resolver, fake_world) -> None:
        """一次运行报告全部问题包，而不仅是第一个"""
        root = fake_loader.add("P", deps=["bad/load", "dirty/one", "good/one", "nowhere/x"])
        fake_loader.add("bad/load", error="no buildable Go source files")
        fake_loader.add("dirty/one", dir="/ws/dirty")
        fake_loader.add("good/one", dir="/ws/good")
        fake_loader.add("nowhere/x", dir="/ws/nowhere")
        fake_resolver.add("dirty/one")
        fake_resolver.add("good/one")
        fake_world.worktree("/ws/dirty", REV_A, dirty=True)
        fake_world.worktree("/ws/good", REV_B)

        with pytest.raises(CaptureError) as exc:
            capture([root], fake_loader, fake_resolver)
        kinds = sorted(type(e).__name__ for e in exc.value.errors)
        assert kinds == sorted([
            LoadError.__name__, DirtyWorkingTreeError.__name__, ResolutionError.__name__,
        ])
        # 正常包依然被检查过
        assert ("identify", "/ws/good") in fake_world.calls

    def test_identify_failure_collected(self, fake_loader, fake_resolver, fake_world) -> None:
        root = fake_loader.add("P", deps=["lib/x"])
        fake_loader.add("lib/x", dir="/not/a/repo")
        fake_resolver.add("lib/x")
        with pytest.raises(CaptureError, match="1 个错误"):
            capture([root], fake_loader, fake_resolver)

    def test_sibling_packages_kept_separately(self, fake_loader, fake_resolver, fake_world) -> None:
        """同仓库的兄弟包互不包含，各自成为条目"""
        root = fake_loader.add("P", deps=["lib/r/x", "lib/r/y"])
        fake_loader.add("lib/r/x", dir="/ws/r/x")
        fake_loader.add("lib/r/y", dir="/ws/r/y")
        fake_resolver.add("lib/r")
        fake_world.worktree("/ws/r/x", REV_A)
        fake_world.worktree("/ws/r/y", REV_A)
        m = capture([root], fake_loader, fake_resolver)
        assert [d.import_path for d in m.deps] == ["lib/r/x", "lib/r/y"]

    def test_empty_input_rejected(self, fake_loader, fake_resolver) -> None:
        with pytest.raises(CaptureError):
            capture([], fake_loader, fake_resolver)

    @pytest.mark.parametrize("workers", [1, 4])
    def test_parallel_inspection_keeps_order(self, fake_loader, fake_resolver, fake_world, workers: int) -> None:
        names = [f"lib/p{i}" for i in range(8)]
        root = fake_loader.add("P", deps=list(reversed(names)))
        for n in names:
            fake_loader.add(n, dir=f"/ws/{n}")
            fake_resolver.add(n)
            fake_world.worktree(f"/ws/{n}", REV_B)
        m = capture([root], fake_loader, fake_resolver, max_workers=workers)
        assert [d.import_path for d in m.deps] == names


@pytest.mark.parametrize("order", [
    ["lib/a", "lib/a/util", "lib/a/util/deep", "lib/b", "lib/b/x", "P/internal"],
    ["lib/a/util/deep", "lib/b/x", "P/internal", "lib/a/util", "lib/b", "lib/a"],
    ["P/internal", "lib/b", "lib/a/util", "lib/b/x", "lib/a", "lib/a/util/deep"],
])
def test_no_subpath_pairs_regardless_of_input_order(order, fake_loader, fake_resolver, fake_world) -> None:
    root = fake_loader.add("P", deps=list(order))
    for name in order:
        fake_loader.add(name, dir=f"/ws/{name}")
        fake_world.worktree(f"/ws/{name}", REV_A)
    fake_resolver.add("lib/a")
    fake_resolver.add("lib/b")

    m = capture([root], fake_loader, fake_resolver)
    assert [d.import_path for d in m.deps] == ["lib/a", "lib/b"]
    assert m.violations() == []
