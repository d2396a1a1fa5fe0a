"""领域协议定义

锁定和还原只依赖这里的抽象，具体实现（go list、网络探测）可在测试中替换。
"""

from __future__ import annotations

from typing import Protocol

from revpin.core.models import Package, RepoRoot


class PackageLoader(Protocol):
    """包加载器协议

    按输入顺序返回每个导入路径的解析结果，单个包的错误放在
    Package.error 中，整体调用失败才抛异常。
    """

    def load(self, import_paths: list[str]) -> list[Package]:
        ...

    def toolchain_version(self) -> str:
        """工具链版本字符串，原样记录，不做解析"""
        ...


class RootResolver(Protocol):
    """导入路径 -> 代码仓根"""

    def resolve(self, import_path: str) -> RepoRoot:
        ...
