"""服务层: 组合核心模块完成锁定 / 还原两个工作流"""

from revpin.services.restore_service import RestoreResult, RestoreService
from revpin.services.save_service import SaveService

__all__ = [
    "RestoreResult",
    "RestoreService",
    "SaveService",
]
