"""
截图失败类型。

单个截图方式失败只在本地回退；所有方式、所有轮次都失败后才汇总成
CaptureExhausted 抛给调用方。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple


class CaptureError(Exception):
    """截图相关错误的基类"""


class StrategyFailure(CaptureError):
    def __init__(self, strategy: str, message: str) -> None:
        super().__init__(message)
        self.strategy = strategy
        self.message = message


class ValidationFailure(StrategyFailure):
    """截到的数据签名不对或尺寸过小，按截图失败处理。"""


@dataclass(frozen=True)
class AttemptFailure:
    strategy: str
    attempt: int
    message: str
    timed_out: bool = False

    def __str__(self) -> str:
        return f"{self.strategy} (attempt {self.attempt}): {self.message}"


class CaptureExhausted(CaptureError):
    def __init__(self, attempts: int, failures: Sequence[AttemptFailure]) -> None:
        self.attempts = attempts
        self.failures: Tuple[AttemptFailure, ...] = tuple(failures)
        summary = "; ".join(str(failure) for failure in self.failures)
        super().__init__(
            f"Could not capture screenshot after {attempts} attempts. Errors: {summary}"
        )

    @property
    def timed_out_only(self) -> bool:
        """全部失败都是超时：更可能是暂时性问题，而不是没有可用的截图方式。"""
        return bool(self.failures) and all(f.timed_out for f in self.failures)
