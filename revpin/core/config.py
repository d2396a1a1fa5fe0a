"""集中配置管理

支持从 YAML 文件加载 + 编程式覆盖。全局单例只是入口层的便利，
布局和服务都显式接收 Config（或其中的字段），不读取模块级变量。
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field

import yaml

from revpin.core.exceptions import ConfigError
from revpin.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


def _default_spool() -> str:
    return os.environ.get("REVPIN_SPOOL") or os.path.join(tempfile.gettempdir(), "revpin")


@dataclass
class Config:
    """全局配置"""

    # 目录
    spool_dir: str = field(default_factory=_default_spool)
    manifest_file: str = "Godeps/Godeps.json"

    # 工具链
    go_cmd: str = "go"

    # 远程名
    fast_remote: str = "fast"
    main_remote: str = "main"

    # 执行
    max_workers: int = 1
    probe_timeout: float = 30.0

    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigError(f"max_workers 必须 >= 1: {self.max_workers}")
        if self.fast_remote == self.main_remote:
            raise ConfigError(f"fast_remote 与 main_remote 不能同名: {self.main_remote}")

    @classmethod
    def from_file(cls, path: str = "revpin.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"无法读取配置文件 {path}: {e}") from e
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件无效 {path}: {e}") from e
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "revpin.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
