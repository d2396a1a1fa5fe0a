"""缓存目录布局

spool 根目录下两套互不相交的寻址:

  spool/repo/<仓库根导入路径>          每个仓库一份持久的裸克隆，跨版本共享
  spool/rev/<rev[:2]>/<rev[2:]>        每个版本一个 GOPATH 风格的工作区，
                                       检出内容位于其下的 src/<导入路径>

例:

  导入路径                 rev        repo_path                         gopath
  github.com/kr/s3         a1b2c3…    spool/repo/github.com/kr/s3       spool/rev/a1/b2c3…
  github.com/lib/pq/oid    deadbe…    spool/repo/github.com/lib/pq      spool/rev/de/adbe…
"""

from __future__ import annotations

from pathlib import Path

from revpin.core.models import RepoRoot

# rev 至少需要 2 个字符的分片前缀 + 1 个字符的剩余部分
MIN_REV_LEN = 3


class SpoolLayout:
    """以 spool 根目录参数化的路径计算（纯函数，无 I/O）"""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def repo_path(self, repo_root: RepoRoot) -> Path:
        """仓库缓存目录"""
        return self.root / "repo" / repo_root.root

    def gopath(self, rev: str) -> Path:
        """版本工作区根目录，可直接放入 GOPATH"""
        if len(rev) < MIN_REV_LEN:
            raise ValueError(f"版本号过短，无法分片: {rev!r}")
        return self.root / "rev" / rev[:2] / rev[2:]

    def workdir(self, rev: str, import_path: str) -> Path:
        """该版本下指定导入路径的检出目录"""
        return self.gopath(rev) / "src" / import_path

    def workdir_root(self, rev: str, repo_root: RepoRoot) -> Path:
        """该版本下仓库根的检出目录"""
        return self.gopath(rev) / "src" / repo_root.root

    def list_gopaths(self) -> list[Path]:
        """列出已存在的版本工作区"""
        base = self.root / "rev"
        if not base.exists():
            return []
        return sorted(
            rest for shard in base.iterdir() if shard.is_dir()
            for rest in shard.iterdir() if rest.is_dir()
        )
