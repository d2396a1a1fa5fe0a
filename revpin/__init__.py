"""revpin - 依赖版本锁定与源码还原"""

__version__ = "0.3.0"
