"""
临时目录清理：删除之前失败尝试遗留的临时截图文件。
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

STALE_AFTER_SECONDS = 5 * 60


def clean_stale_files(
    directory: Path,
    max_age_seconds: float = STALE_AFTER_SECONDS,
    now: Optional[float] = None,
) -> int:
    directory = Path(directory)
    if not directory.is_dir():
        return 0

    now = time.time() if now is None else now
    removed = 0
    for entry in directory.iterdir():
        try:
            if not entry.is_file():
                continue
            if now - entry.stat().st_mtime > max_age_seconds:
                entry.unlink()
                removed += 1
                logger.debug("已清理过期临时文件: %s", entry)
        except OSError as exc:
            # 单个文件失败不影响其余文件的清理
            logger.warning("清理临时文件 %s 失败: %s", entry, exc)
    return removed
