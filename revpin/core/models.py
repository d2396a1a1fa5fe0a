"""核心数据模型

包加载器返回的 Package 与代码仓根 RepoRoot 集中定义在这里，
依赖条目与清单分别见 dependency.py / godeps.py。
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Package:
    """包加载器对单个导入路径的解析结果"""

    import_path: str
    dir: str = ""
    root: str = ""  # 外部工作区根目录，不在工作区中时为空
    standard: bool = False
    deps: list[str] = field(default_factory=list)
    error: str = ""


@dataclass(frozen=True, eq=False)
class RepoRoot:
    """一个上游代码仓

    多个导入路径可以解析到同一个 RepoRoot；相等性只看 root。
    """

    root: str  # 能命名该仓库的最短导入路径
    repo: str  # 规范拉取 URL
    vcs: str   # 后端标识: "git" / "hg"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RepoRoot):
            return NotImplemented
        return self.root == other.root

    def __hash__(self) -> int:
        return hash(self.root)

    def covers(self, import_path: str) -> bool:
        """import_path 是否位于此仓库内"""
        return import_path == self.root or import_path.startswith(self.root + "/")
