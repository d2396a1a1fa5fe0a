"""代码仓根解析

把导入路径映射到包含它的最小代码仓（根导入路径、规范 URL、VCS 类型）。

解析顺序:
  1. 已知托管站点的静态规则（github.com、bitbucket.org 等）
  2. 路径中带 .git / .hg 后缀的通用规则
  3. 远程探测: 请求 https://<导入路径>?go-get=1，读取 go-import meta 标签

解析结果按仓库根缓存，同一进程内同一仓库下的其他导入路径不会再次探测。
"""

from __future__ import annotations

import json
import logging
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from html.parser import HTMLParser

from revpin.core.exceptions import NetworkError, ResolutionError
from revpin.core.models import RepoRoot
from revpin.core.vcs import backend_kinds
from revpin.utils.net import fetch_text

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], str]

_ELEM = r"[A-Za-z0-9_.\-]+"


@dataclass(frozen=True)
class HostRule:
    """一条静态托管规则"""

    prefix: str
    pattern: re.Pattern[str]
    vcs: str = ""       # 为空时需要调用 probe 判定
    repo: str = "https://{root}"
    probe: str = ""     # 判定 vcs 的探测方式


_HOST_RULES: tuple[HostRule, ...] = (
    HostRule(
        prefix="github.com/",
        pattern=re.compile(rf"^(?P<root>github\.com/{_ELEM}/{_ELEM})(/{_ELEM})*$"),
        vcs="git",
    ),
    HostRule(
        prefix="bitbucket.org/",
        pattern=re.compile(
            rf"^(?P<root>bitbucket\.org/(?P<bitname>{_ELEM}/{_ELEM}))(/{_ELEM})*$"
        ),
        probe="bitbucket",
    ),
    HostRule(
        prefix="launchpad.net/",
        pattern=re.compile(
            rf"^(?P<root>launchpad\.net/(({_ELEM})(/{_ELEM})?|~{_ELEM}/(\+junk|{_ELEM})/{_ELEM}))"
            rf"(/{_ELEM})*$"
        ),
        vcs="bzr",
    ),
    HostRule(
        prefix="hub.jazz.net/git/",
        pattern=re.compile(rf"^(?P<root>hub\.jazz\.net/git/[a-z0-9]+/{_ELEM})(/{_ELEM})*$"),
        vcs="git",
    ),
    HostRule(
        prefix="git.apache.org/",
        pattern=re.compile(r"^(?P<root>git\.apache\.org/[a-z0-9_.\-]+\.git)(/[A-Za-z0-9_.\-]+)*$"),
        vcs="git",
    ),
    HostRule(
        prefix="git.openstack.org/",
        pattern=re.compile(
            rf"^(?P<root>git\.openstack\.org/{_ELEM}/{_ELEM})(\.git)?(/{_ELEM})*$"
        ),
        vcs="git",
    ),
)

# example.com/path/repo.git/sub/pkg -> 根 example.com/path/repo.git
_GENERIC_RULE = re.compile(
    r"^(?P<root>(?P<repo>([a-z0-9.\-]+\.)+[a-z0-9.\-]+(:[0-9]+)?(/~?[A-Za-z0-9_.\-]+)+?)"
    r"\.(?P<vcs>bzr|git|hg|svn))(/~?[A-Za-z0-9_.\-]+)*$"
)


class _GoImportParser(HTMLParser):
    """收集 <meta name="go-import" content="prefix vcs repo"> 标签"""

    def __init__(self) -> None:
        super().__init__()
        self.imports: list[tuple[str, str, str]] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag != "meta":
            return
        a = dict(attrs)
        if a.get("name") != "go-import":
            return
        fields = (a.get("content") or "").split()
        if len(fields) == 3:
            self.imports.append((fields[0], fields[1], fields[2]))


def parse_go_import_meta(html: str) -> list[tuple[str, str, str]]:
    """从 HTML 中解析 go-import meta 标签，返回 (prefix, vcs, repo) 列表"""
    parser = _GoImportParser()
    parser.feed(html)
    parser.close()
    return parser.imports


def _check_import_path(import_path: str) -> None:
    if not import_path or import_path.startswith("/") or import_path.endswith("/"):
        raise ResolutionError(import_path, "导入路径格式不合法")
    parts = import_path.split("/")
    if any(p in ("", ".", "..") for p in parts):
        raise ResolutionError(import_path, "导入路径包含非法路径段")
    if "." not in parts[0]:
        raise ResolutionError(import_path, "导入路径首段不是主机名")


class RepoRootResolver:
    """导入路径 -> RepoRoot 解析器（线程安全，带缓存）"""

    def __init__(self, fetcher: Fetcher | None = None, timeout: float = 30.0) -> None:
        self._fetcher = fetcher
        self._timeout = timeout
        self._lock = threading.Lock()
        self._cache: dict[str, RepoRoot] = {}

    def _fetch(self, url: str) -> str:
        if self._fetcher is not None:
            return self._fetcher(url)
        return fetch_text(url, timeout=self._timeout)

    def resolve(self, import_path: str) -> RepoRoot:
        """解析导入路径所属的代码仓

        Raises:
            ResolutionError: 无法确定仓库或 VCS 不受支持
        """
        cached = self._lookup(import_path)
        if cached is not None:
            return cached

        _check_import_path(import_path)
        rr = self._resolve_static(import_path)
        if rr is None:
            rr = self._resolve_dynamic(import_path)

        if rr.vcs not in backend_kinds():
            raise ResolutionError(import_path, f"不支持的 VCS: {rr.vcs}")
        if not rr.covers(import_path):
            raise ResolutionError(import_path, f"仓库根 {rr.root} 不包含该路径")

        with self._lock:
            self._cache.setdefault(rr.root, rr)
            rr = self._cache[rr.root]
        logger.debug("仓库根: %s -> %s (%s %s)", import_path, rr.root, rr.vcs, rr.repo)
        return rr

    def _lookup(self, import_path: str) -> RepoRoot | None:
        with self._lock:
            for rr in self._cache.values():
                if rr.covers(import_path):
                    return rr
        return None

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    # ---- 静态规则 ----

    def _resolve_static(self, import_path: str) -> RepoRoot | None:
        for rule in _HOST_RULES:
            if not import_path.startswith(rule.prefix):
                continue
            m = rule.pattern.match(import_path)
            if m is None:
                raise ResolutionError(import_path, f"不符合 {rule.prefix} 的路径规则")
            root = m.group("root")
            vcs = rule.vcs
            if rule.probe == "bitbucket":
                vcs = self._probe_bitbucket(import_path, m.group("bitname"))
            return RepoRoot(root=root, repo=rule.repo.format(root=root), vcs=vcs)

        m = _GENERIC_RULE.match(import_path)
        if m is not None:
            return RepoRoot(
                root=m.group("root"),
                repo=f"https://{m.group('repo')}",
                vcs=m.group("vcs"),
            )
        return None

    def _probe_bitbucket(self, import_path: str, bitname: str) -> str:
        url = f"https://api.bitbucket.org/2.0/repositories/{bitname}?fields=scm"
        try:
            data = json.loads(self._fetch(url))
        except NetworkError as e:
            raise ResolutionError(import_path, f"bitbucket 探测失败: {e}") from e
        except ValueError as e:
            raise ResolutionError(import_path, f"bitbucket 返回内容无法解析: {e}") from e
        scm = data.get("scm", "") if isinstance(data, dict) else ""
        if scm not in ("git", "hg"):
            raise ResolutionError(import_path, f"bitbucket 返回未知 scm: {scm!r}")
        return scm

    # ---- 远程探测 ----

    def _resolve_dynamic(self, import_path: str) -> RepoRoot:
        url = f"https://{import_path}?go-get=1"
        try:
            body = self._fetch(url)
        except NetworkError as e:
            raise ResolutionError(import_path, f"远程探测失败: {e}") from e

        matches = [
            (prefix, vcs, repo)
            for prefix, vcs, repo in parse_go_import_meta(body)
            if vcs != "mod" and (import_path == prefix or import_path.startswith(prefix + "/"))
        ]
        if not matches:
            raise ResolutionError(import_path, f"{url} 中没有匹配的 go-import meta 标签")
        if len(matches) > 1:
            raise ResolutionError(import_path, f"{url} 中有多个匹配的 go-import meta 标签")
        prefix, vcs, repo = matches[0]
        return RepoRoot(root=prefix, repo=repo, vcs=vcs)


_default_resolver: RepoRootResolver | None = None
_default_lock = threading.Lock()


def get_resolver(timeout: float = 30.0) -> RepoRootResolver:
    """进程级共享的解析器（缓存跨调用复用），timeout 只在首次创建时生效"""
    global _default_resolver  # noqa: PLW0603
    with _default_lock:
        if _default_resolver is None:
            _default_resolver = RepoRootResolver(timeout=timeout)
        return _default_resolver
