"""Git 后端

仓库缓存是裸仓库；检出使用独立的临时 index 文件，不移动裸仓库的 HEAD，
因此同一缓存上并发检出不同版本互不干扰。
"""

from __future__ import annotations

import logging
import os
import tempfile

from revpin.core.exceptions import BackendError
from revpin.core.vcs.base import VcsBackend
from revpin.utils.shell import CommandResult

logger = logging.getLogger(__name__)


class GitBackend(VcsBackend):
    kind = "git"
    cmd = "git"

    def identify(self, directory: str) -> str:
        rev = self._run(directory, "rev-parse", "HEAD").strip()
        if not rev:
            raise BackendError(f"git rev-parse 未返回版本号: {directory}")
        return rev

    def is_dirty(self, directory: str, rev: str) -> bool:
        r = self._exec(directory, "diff", rev or "HEAD")
        if not r.success:
            logger.warning("无法检测工作区状态，视为有修改: %s", directory)
            return True
        return bool(r.stdout.strip())

    def describe(self, directory: str, rev: str) -> str:
        r = self._exec(directory, "describe", "--tags", rev)
        return r.stdout.strip() if r.success else ""

    # 仓库缓存上的命令一律显式指定 --git-dir，git 不会向上查找外层仓库

    def _cache_exec(self, directory: str, *args: str) -> CommandResult:
        return self._exec(directory, f"--git-dir={os.path.abspath(directory)}", *args)

    def _cache_run(self, directory: str, *args: str) -> str:
        return self._run(directory, f"--git-dir={os.path.abspath(directory)}", *args)

    def is_repo(self, directory: str) -> bool:
        if not os.path.isdir(directory):
            return False
        r = self._cache_exec(directory, "rev-parse", "--is-bare-repository")
        return r.success and r.stdout.strip() == "true"

    def create(self, directory: str) -> None:
        self._ensure_empty(directory)
        self._run(directory, "init", "--bare", "--quiet", os.path.abspath(directory))

    def link(self, directory: str, remote: str, url: str) -> None:
        if not url:
            return
        current = self._cache_exec(directory, "config", "--get", f"remote.{remote}.url")
        if current.success:
            if current.stdout.strip() == url:
                return
            logger.warning(
                "remote %s 地址变更: %s -> %s (%s)",
                remote, current.stdout.strip(), url, directory,
            )
            self._cache_run(directory, "remote", "set-url", remote, url)
            return
        self._cache_run(directory, "remote", "add", remote, url)

    def fetch(self, directory: str, remote: str) -> None:
        r = self._cache_exec(directory, "fetch", "--quiet", "--tags", remote)
        if not r.success:
            self._raise_fetch_error(directory, remote, r)

    def exists(self, directory: str, rev: str) -> bool:
        r = self._cache_exec(directory, "cat-file", "-e", f"{rev}^{{commit}}")
        return r.success

    def checkout(self, workdir: str, rev: str, source_dir: str) -> None:
        fd, index_file = tempfile.mkstemp(prefix="revpin-index-")
        os.close(fd)
        os.unlink(index_file)
        env = {**os.environ, "GIT_INDEX_FILE": index_file}
        git_dir = f"--git-dir={os.path.abspath(source_dir)}"
        work_tree = f"--work-tree={os.path.abspath(workdir)}"
        try:
            self._run(workdir, git_dir, work_tree, "read-tree", rev, env=env)
            self._run(workdir, git_dir, work_tree, "checkout-index", "--all", "--force", env=env)
        finally:
            if os.path.exists(index_file):
                os.unlink(index_file)
