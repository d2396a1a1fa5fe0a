"""go list 包加载器

调用 `go list -e -json <paths...>`，输出是若干个首尾相接的 JSON 对象，
逐个解码后映射为 Package。
"""

from __future__ import annotations

import json
import logging
from typing import Any

from revpin.core.exceptions import LoadError
from revpin.core.models import Package
from revpin.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)


def decode_json_stream(text: str) -> list[dict[str, Any]]:
    """解码首尾相接的 JSON 对象流"""
    decoder = json.JSONDecoder()
    objs: list[dict[str, Any]] = []
    idx = 0
    while True:
        while idx < len(text) and text[idx].isspace():
            idx += 1
        if idx >= len(text):
            break
        obj, idx = decoder.raw_decode(text, idx)
        if not isinstance(obj, dict):
            raise ValueError(f"期望 JSON 对象，实际为 {type(obj).__name__}")
        objs.append(obj)
    return objs


def package_from_json(obj: dict[str, Any]) -> Package:
    err = obj.get("Error") or {}
    return Package(
        import_path=obj.get("ImportPath", ""),
        dir=obj.get("Dir", ""),
        root=obj.get("Root", ""),
        standard=bool(obj.get("Standard", False)),
        deps=list(obj.get("Deps") or []),
        error=err.get("Err", "") if isinstance(err, dict) else str(err),
    )


class GoListLoader:
    """基于 go 工具链的包加载器"""

    def __init__(
        self, go_cmd: str = "go", *, cwd: str = ".", executor: CommandExecutor | None = None,
    ) -> None:
        self.go_cmd = go_cmd
        self.cwd = cwd
        self._executor = executor

    @property
    def executor(self) -> CommandExecutor:
        return self._executor or get_executor()

    def load(self, import_paths: list[str]) -> list[Package]:
        if not import_paths:
            return []
        args = [self.go_cmd, "list", "-e", "-json", *import_paths]
        r = self.executor.execute(args, cwd=self.cwd)
        if not r.success:
            raise LoadError(" ".join(import_paths[:3]), f"go list 失败: {r.stderr.strip()[:500]}")
        try:
            pkgs = [package_from_json(o) for o in decode_json_stream(r.stdout)]
        except ValueError as e:
            raise LoadError(" ".join(import_paths[:3]), f"go list 输出无法解析: {e}") from e
        logger.debug("go list 返回 %d 个包", len(pkgs))
        return pkgs

    def toolchain_version(self) -> str:
        r = self.executor.execute([self.go_cmd, "version"], cwd=self.cwd)
        if not r.success:
            raise LoadError(self.go_cmd, f"无法读取工具链版本: {r.stderr.strip()[:500]}")
        return r.stdout.strip()
