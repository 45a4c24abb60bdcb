"""
存储侧模块。

- artifact_store: 主队列 / 附加队列的截图文件生命周期。
"""

from .artifact_store import (
    ArtifactStore,
    DeleteOutcome,
    MAX_SCREENSHOTS,
    Mode,
    QueueName,
    StorageFailure,
    delete_file,
    queue_for_mode,
)

__all__ = [
    "ArtifactStore",
    "DeleteOutcome",
    "MAX_SCREENSHOTS",
    "Mode",
    "QueueName",
    "StorageFailure",
    "delete_file",
    "queue_for_mode",
]
