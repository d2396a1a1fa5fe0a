"""统一异常体系

所有业务异常继承 RevpinError，库代码只抛异常、不退出进程；
CLI 层据此输出友好提示并决定退出码。
"""

from __future__ import annotations


class RevpinError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(RevpinError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ResolutionError(RevpinError):
    """导入路径无法映射到代码仓根"""

    code = "UNRESOLVABLE_IMPORT_PATH"

    def __init__(self, import_path: str, reason: str) -> None:
        super().__init__(f"无法解析导入路径 {import_path}: {reason}")
        self.import_path = import_path


class LoadError(RevpinError):
    """包加载器报告了某个导入路径的错误"""

    code = "LOAD_ERROR"

    def __init__(self, import_path: str, reason: str) -> None:
        super().__init__(f"加载包失败 {import_path}: {reason}")
        self.import_path = import_path


class DirtyWorkingTreeError(RevpinError):
    """工作区存在未提交的修改，拒绝锁定"""

    code = "DIRTY_WORKING_TREE"

    def __init__(self, directory: str) -> None:
        super().__init__(f"工作区有未提交的修改: {directory}")
        self.directory = directory


class BackendError(RevpinError):
    """VCS 命令执行失败"""

    code = "BACKEND_ERROR"


class NetworkError(BackendError):
    """远程拉取或探测时的传输失败"""

    code = "NETWORK_ERROR"


class UnknownRevisionError(RevpinError):
    """锁定的版本不在拉取到的历史中"""

    code = "UNKNOWN_REVISION"

    def __init__(self, import_path: str, rev: str, phase: str = "") -> None:
        prefix = f"{phase}: " if phase else ""
        super().__init__(f"{prefix}未知版本 {rev} ({import_path})")
        self.import_path = import_path
        self.rev = rev
        self.phase = phase


class ParseError(RevpinError):
    """清单文件结构不合法"""

    code = "PARSE_ERROR"


class CaptureError(RevpinError):
    """锁定过程中收集到一个或多个错误，不输出部分清单"""

    code = "CAPTURE_ERROR"

    def __init__(self, message: str, errors: list[RevpinError] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    @property
    def details(self) -> list[str]:
        return [str(e) for e in self.errors]


class RestoreError(RevpinError):
    """还原过程中一个或多个依赖失败"""

    code = "RESTORE_ERROR"

    def __init__(self, message: str, errors: dict[str, RevpinError] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or {}

    @property
    def details(self) -> list[str]:
        return [f"{path}: {e}" for path, e in self.errors.items()]
