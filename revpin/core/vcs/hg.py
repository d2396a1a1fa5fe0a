"""Mercurial 后端

hg 没有 `remote add`，命名远程保存在 .hg/hgrc 的 [paths] 段中。
仓库缓存上的命令显式指定 --repository，hg 不会向上查找外层仓库。
"""

from __future__ import annotations

import configparser
import logging
import os
from pathlib import Path

from revpin.core.exceptions import BackendError
from revpin.core.vcs.base import VcsBackend

logger = logging.getLogger(__name__)


class MercurialBackend(VcsBackend):
    kind = "hg"
    cmd = "hg"

    def identify(self, directory: str) -> str:
        out = self._run(directory, "identify", "--id", "--debug").strip()
        # 工作区有修改时 hg 在版本号后追加 "+"
        rev = out.split()[0].rstrip("+") if out else ""
        if not rev:
            raise BackendError(f"hg identify 未返回版本号: {directory}")
        return rev

    def is_dirty(self, directory: str, rev: str) -> bool:
        args = ["diff", "-r", rev] if rev else ["diff"]
        r = self._exec(directory, *args)
        if not r.success:
            logger.warning("无法检测工作区状态，视为有修改: %s", directory)
            return True
        return bool(r.stdout.strip())

    def describe(self, directory: str, rev: str) -> str:
        r = self._exec(
            directory, "log", "-r", rev,
            "--template", "{latesttag}-{latesttagdistance}",
        )
        return r.stdout.strip() if r.success else ""

    def is_repo(self, directory: str) -> bool:
        return (Path(directory) / ".hg").is_dir()

    def create(self, directory: str) -> None:
        self._ensure_empty(directory)
        self._run(directory, "init", os.path.abspath(directory))

    def link(self, directory: str, remote: str, url: str) -> None:
        if not url:
            return
        hgrc = Path(directory) / ".hg" / "hgrc"
        if not hgrc.parent.is_dir():
            raise BackendError(f"不是 hg 仓库: {directory}")
        cp = configparser.RawConfigParser()
        cp.read(hgrc, encoding="utf-8")
        if not cp.has_section("paths"):
            cp.add_section("paths")
        current = cp.get("paths", remote, fallback="")
        if current == url:
            return
        if current:
            logger.warning("remote %s 地址变更: %s -> %s (%s)", remote, current, url, directory)
        cp.set("paths", remote, url)
        with open(hgrc, "w", encoding="utf-8") as f:
            cp.write(f)

    def fetch(self, directory: str, remote: str) -> None:
        r = self._exec(directory, "--repository", os.path.abspath(directory), "pull", "--quiet", remote)
        if not r.success:
            self._raise_fetch_error(directory, remote, r)

    def exists(self, directory: str, rev: str) -> bool:
        r = self._exec(
            directory, "--repository", os.path.abspath(directory),
            "log", "-r", rev, "--template", "{node}",
        )
        return r.success and bool(r.stdout.strip())

    def checkout(self, workdir: str, rev: str, source_dir: str) -> None:
        self._run(workdir, "clone", "--quiet", "--updaterev", rev, os.path.abspath(source_dir), ".")
