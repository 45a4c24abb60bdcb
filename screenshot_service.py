"""
截图服务：组合截图调度与文件存储，对外提供截图、查询、预览、删除与清空。

当前模式决定新截图进入哪个队列：queue -> 主队列，solutions / debug -> 附加队列。
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

from capture import CaptureOrchestrator, default_strategies
from capture.screen_capture import ScreenshotFn
from image_ops import to_data_uri
from settings import Settings
from storage import ArtifactStore, DeleteOutcome, Mode, QueueName, StorageFailure

logger = logging.getLogger(__name__)


class ScreenshotService:
    def __init__(
        self,
        orchestrator: CaptureOrchestrator,
        store: ArtifactStore,
        mode: Union[Mode, str] = Mode.QUEUE,
    ) -> None:
        self.orchestrator = orchestrator
        self.store = store
        self._mode = Mode(mode)

        self.orchestrator.ensure_workspace()
        self.store.ensure_directories()
        # 启动时清空遗留截图，保证队列从空开始
        self.store.purge_on_start()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        mode: Union[Mode, str] = Mode.QUEUE,
        platform: str = sys.platform,
        screenshot: Optional[ScreenshotFn] = None,
    ) -> "ScreenshotService":
        capture = settings.capture
        storage = settings.storage
        orchestrator = CaptureOrchestrator(
            default_strategies(capture, platform=platform, screenshot=screenshot),
            temp_dir=storage.temp_root(),
            max_retries=capture.max_retries,
            backoff_base=capture.backoff_base_ms / 1000.0,
            stale_after=capture.temp_max_age_seconds,
        )
        store = ArtifactStore(
            storage.primary_dir(),
            storage.secondary_dir(),
            capacity=storage.max_screenshots,
        )
        return cls(orchestrator, store, mode=mode)

    @property
    def mode(self) -> Mode:
        return self._mode

    def get_mode(self) -> Mode:
        return self._mode

    def set_mode(self, mode: Union[Mode, str]) -> None:
        self._mode = Mode(mode)
        logger.info("切换截图模式: %s", self._mode.value)

    async def capture(self) -> str:
        mode = self._mode
        logger.info("开始截图，当前模式: %s", mode.value)
        payload = await self.orchestrator.capture()
        return await asyncio.to_thread(self.store.append, mode, payload)

    def list_primary(self) -> List[str]:
        return self.store.snapshot(QueueName.PRIMARY)

    def list_secondary(self) -> List[str]:
        return self.store.snapshot(QueueName.SECONDARY)

    def preview(self, path: Union[str, Path]) -> str:
        try:
            data = Path(path).read_bytes()
        except FileNotFoundError:
            logger.warning("截图文件不存在: %s", path)
            return ""
        except OSError as exc:
            raise StorageFailure(f"Failed to read screenshot {path}: {exc}") from exc
        return to_data_uri(data)

    def remove(self, path: Union[str, Path]) -> DeleteOutcome:
        return self.store.remove(path)

    def clear_secondary(self) -> List[DeleteOutcome]:
        return self.store.clear(QueueName.SECONDARY)

    def clear_all(self) -> List[DeleteOutcome]:
        return self.store.clear()
