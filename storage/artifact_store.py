"""
截图文件存储：两个有界 FIFO 队列（主队列 / 附加队列）及其磁盘文件。

超出容量时删除最早的一张；删除失败只记日志，队列状态始终与内存视图一致。
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)

MAX_SCREENSHOTS = 5


class Mode(str, Enum):
    QUEUE = "queue"
    SOLUTIONS = "solutions"
    DEBUG = "debug"


class QueueName(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


def queue_for_mode(mode: Union[Mode, str]) -> QueueName:
    return QueueName.PRIMARY if Mode(mode) is Mode.QUEUE else QueueName.SECONDARY


class StorageFailure(Exception):
    """截图文件写入或读取失败"""


@dataclass(frozen=True)
class DeleteOutcome:
    path: str
    removed: bool
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def delete_file(path: Union[str, Path]) -> DeleteOutcome:
    """尽力删除，失败时返回带 error 的结果而不抛出。"""
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return DeleteOutcome(str(path), removed=False)
    except OSError as exc:
        logger.warning("删除截图 %s 失败: %s", path, exc)
        return DeleteOutcome(str(path), removed=False, error=str(exc))
    return DeleteOutcome(str(path), removed=True)


class ArtifactStore:
    def __init__(
        self,
        primary_dir: Path,
        secondary_dir: Path,
        capacity: int = MAX_SCREENSHOTS,
        extension: str = ".png",
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.extension = extension
        self._dirs: Dict[QueueName, Path] = {
            QueueName.PRIMARY: Path(primary_dir),
            QueueName.SECONDARY: Path(secondary_dir),
        }
        self._queues: Dict[QueueName, List[str]] = {name: [] for name in QueueName}
        self._locks: Dict[QueueName, threading.Lock] = {name: threading.Lock() for name in QueueName}

    def directory(self, queue: QueueName) -> Path:
        return self._dirs[QueueName(queue)]

    def ensure_directories(self) -> None:
        for directory in self._dirs.values():
            if not directory.exists():
                directory.mkdir(parents=True, exist_ok=True)
                logger.info("已创建目录: %s", directory)

    def snapshot(self, queue: QueueName) -> List[str]:
        name = QueueName(queue)
        with self._locks[name]:
            return list(self._queues[name])

    @property
    def primary(self) -> List[str]:
        return self.snapshot(QueueName.PRIMARY)

    @property
    def secondary(self) -> List[str]:
        return self.snapshot(QueueName.SECONDARY)

    def append(self, mode: Union[Mode, str], payload: bytes) -> str:
        name = queue_for_mode(mode)
        directory = self._dirs[name]
        directory.mkdir(parents=True, exist_ok=True)
        path = (directory / f"{uuid.uuid4()}{self.extension}").resolve()
        try:
            path.write_bytes(payload)
        except OSError as exc:
            raise StorageFailure(f"Failed to save screenshot {path}: {exc}") from exc

        with self._locks[name]:
            queue = self._queues[name]
            queue.append(str(path))
            logger.info("截图已加入 %s 队列: %s", name.value, path)
            evicted = queue.pop(0) if len(queue) > self.capacity else None

        if evicted is not None:
            outcome = delete_file(evicted)
            if outcome.ok:
                logger.info("已移除 %s 队列中最早的截图: %s", name.value, evicted)
        return str(path)

    def remove(self, path: Union[str, Path]) -> DeleteOutcome:
        path = str(path)
        # 文件已不存在也视为成功
        outcome = delete_file(path)
        if not outcome.ok:
            return outcome

        for name in QueueName:
            with self._locks[name]:
                self._queues[name] = [p for p in self._queues[name] if p != path]
        return outcome

    def clear(self, *queues: QueueName) -> List[DeleteOutcome]:
        selected = [QueueName(q) for q in queues] or list(QueueName)
        outcomes: List[DeleteOutcome] = []
        for name in selected:
            with self._locks[name]:
                paths, self._queues[name] = self._queues[name], []
            outcomes.extend(delete_file(p) for p in paths)
        return outcomes

    def purge_on_start(self) -> List[DeleteOutcome]:
        """删除两个目录中遗留的截图，保证启动时队列为空。"""
        outcomes: List[DeleteOutcome] = []
        for name, directory in self._dirs.items():
            with self._locks[name]:
                self._queues[name] = []
            if not directory.is_dir():
                continue
            for entry in sorted(directory.glob(f"*{self.extension}")):
                if entry.is_file():
                    outcome = delete_file(entry)
                    if outcome.removed:
                        logger.debug("已删除遗留截图: %s", entry)
                    outcomes.append(outcome)
        logger.info("截图目录已清理")
        return outcomes
