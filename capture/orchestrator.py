"""
截图调度：按优先级依次尝试各截图方式，每种方式单独限时；
整轮都失败时按指数退避（200ms, 400ms, 800ms ...）进入下一轮。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from .errors import AttemptFailure, CaptureExhausted, StrategyFailure
from .screen_capture import CaptureStrategy
from .workspace import STALE_AFTER_SECONDS, clean_stale_files

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class CaptureReport:
    payload: bytes
    strategy: str
    attempt: int
    failures: Tuple[AttemptFailure, ...] = ()


class CaptureOrchestrator:
    def __init__(
        self,
        strategies: Sequence[CaptureStrategy],
        temp_dir: Path,
        max_retries: int = 3,
        backoff_base: float = 0.2,
        stale_after: float = STALE_AFTER_SECONDS,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        if not strategies:
            raise ValueError("At least one capture strategy is required")
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {max_retries}")
        self.strategies: List[CaptureStrategy] = list(strategies)
        self.temp_dir = Path(temp_dir)
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.stale_after = stale_after
        self._sleep = sleep or asyncio.sleep

    def ensure_workspace(self) -> None:
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    def backoff_delay(self, attempt: int) -> float:
        return self.backoff_base * (2 ** (attempt - 1))

    async def capture(self) -> bytes:
        report = await self.capture_with_report()
        return report.payload

    async def capture_with_report(self) -> CaptureReport:
        removed = clean_stale_files(self.temp_dir, self.stale_after)
        if removed:
            logger.info("已清理 %d 个过期临时文件", removed)
        # 系统临时目录可能在运行期间被清空
        self.ensure_workspace()

        failures: List[AttemptFailure] = []
        for attempt in range(1, self.max_retries + 1):
            logger.info("截图尝试 %d/%d", attempt, self.max_retries)

            for strategy in self.strategies:
                try:
                    frame = await asyncio.wait_for(
                        strategy.grab(self.temp_dir), timeout=strategy.timeout
                    )
                except asyncio.TimeoutError:
                    failure = AttemptFailure(
                        strategy.name,
                        attempt,
                        f"{strategy.name} timed out after {strategy.timeout:g} seconds",
                        timed_out=True,
                    )
                except StrategyFailure as exc:
                    failure = AttemptFailure(strategy.name, attempt, exc.message)
                else:
                    self._discard_temp(frame.temp_file)
                    logger.info("%s 在第 %d 次尝试成功", strategy.name, attempt)
                    return CaptureReport(frame.payload, strategy.name, attempt, tuple(failures))

                logger.warning("截图失败 %s", failure)
                failures.append(failure)

            if attempt < self.max_retries:
                delay = self.backoff_delay(attempt)
                logger.info("等待 %.0fms 后重试...", delay * 1000)
                await self._sleep(delay)

        error = CaptureExhausted(self.max_retries, failures)
        logger.error("所有截图方式均失败: %s", error)
        raise error

    def _discard_temp(self, temp_file: Optional[Path]) -> None:
        if temp_file is None:
            return
        try:
            temp_file.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("删除临时文件 %s 失败: %s", temp_file, exc)
