"""
截图侧核心组件：

- `CaptureStrategy` 及其实现：各平台的截图方式
- `CaptureOrchestrator`：限时、回退与重试
- `clean_stale_files`：临时目录清理
"""

from .errors import (
    AttemptFailure,
    CaptureError,
    CaptureExhausted,
    StrategyFailure,
    ValidationFailure,
)
from .orchestrator import CaptureOrchestrator, CaptureReport
from .screen_capture import (
    BufferCaptureStrategy,
    CapturedFrame,
    CaptureStrategy,
    FileCaptureStrategy,
    ScriptCaptureStrategy,
    default_strategies,
)
from .workspace import clean_stale_files


__all__ = [
    "AttemptFailure",
    "BufferCaptureStrategy",
    "CaptureError",
    "CaptureExhausted",
    "CaptureOrchestrator",
    "CaptureReport",
    "CaptureStrategy",
    "CapturedFrame",
    "FileCaptureStrategy",
    "ScriptCaptureStrategy",
    "StrategyFailure",
    "ValidationFailure",
    "clean_stale_files",
    "default_strategies",
]
