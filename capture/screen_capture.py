"""
屏幕截图方式：每种方式在限定时间内产出一张 PNG 截图，失败则抛出 StrategyFailure。

- BufferCaptureStrategy：pyautogui 截图后在进程内编码为 PNG（macOS / Linux）
- FileCaptureStrategy：pyautogui 写入临时文件后读回（Windows）
- ScriptCaptureStrategy：调用系统脚本/命令写入临时文件，作为第二级回退

同一进程只使用与当前系统匹配的一组截图方式，见 default_strategies。
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from image_ops import (
    MIN_CAPTURE_BYTES,
    encode_capture_payload,
    has_png_signature,
    is_uniform_frame,
    is_valid_image,
)
from settings import CaptureSettings

from .errors import StrategyFailure, ValidationFailure

logger = logging.getLogger(__name__)

ScreenshotFn = Callable[..., object]
CommandFactory = Callable[[Path], Sequence[str]]


def _pyautogui_screenshot(*args, **kwargs):
    # 无显示环境下 import pyautogui 会直接报错，只在真正截图时导入
    import pyautogui

    return pyautogui.screenshot(*args, **kwargs)


def _temp_path(temp_dir: Path, prefix: str) -> Path:
    return Path(temp_dir) / f"{prefix}-{uuid.uuid4()}.png"


async def run_in_daemon_thread(func: Callable[..., object], *args):
    """
    在守护线程中执行阻塞的截图调用。

    截图调用无法中断：超时后线程被放弃，结果丢弃，且不会阻止 asyncio.run 退出。
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def deliver(result, error) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def worker() -> None:
        result, error = None, None
        try:
            result = func(*args)
        except Exception as exc:
            error = exc
        # 事件循环已关闭时结果无人等待
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(deliver, result, error)

    threading.Thread(target=worker, name="snapqueue-capture", daemon=True).start()
    return await future


@dataclass
class CapturedFrame:
    payload: bytes
    temp_file: Optional[Path] = None


class CaptureStrategy:
    name = "strategy"

    def __init__(
        self,
        timeout: float,
        min_bytes: int = MIN_CAPTURE_BYTES,
        reject_uniform_frames: bool = False,
    ) -> None:
        self.timeout = timeout
        self.min_bytes = min_bytes
        self.reject_uniform_frames = reject_uniform_frames

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} timeout={self.timeout:g}s>"

    async def grab(self, temp_dir: Path) -> CapturedFrame:
        try:
            frame = await self._acquire(Path(temp_dir))
        except StrategyFailure:
            raise
        except Exception as exc:
            raise StrategyFailure(self.name, f"{type(exc).__name__}: {exc}") from exc

        logger.info("%s 截图完成，大小 %d bytes", self.name, len(frame.payload))
        self.validate(frame.payload)
        return frame

    def validate(self, payload: bytes) -> None:
        if not is_valid_image(payload, self.min_bytes):
            if not payload:
                raise ValidationFailure(self.name, "Screenshot capture returned empty buffer")
            if not has_png_signature(payload):
                raise ValidationFailure(self.name, "Invalid PNG format")
            raise ValidationFailure(self.name, "Screenshot too small - likely invalid")
        if self.reject_uniform_frames and is_uniform_frame(payload):
            raise ValidationFailure(self.name, "Screenshot is a single flat color")

    async def _acquire(self, temp_dir: Path) -> CapturedFrame:
        raise NotImplementedError


class BufferCaptureStrategy(CaptureStrategy):
    name = "pyautogui-buffer"

    def __init__(self, timeout: float, screenshot: Optional[ScreenshotFn] = None, **kwargs) -> None:
        super().__init__(timeout, **kwargs)
        self._screenshot = screenshot or _pyautogui_screenshot

    def _grab_png(self) -> bytes:
        return encode_capture_payload(self._screenshot(), fmt="PNG")

    async def _acquire(self, temp_dir: Path) -> CapturedFrame:
        # 线程里的截图调用无法中断，超时后结果会被丢弃
        payload = await run_in_daemon_thread(self._grab_png)
        return CapturedFrame(payload)


class FileCaptureStrategy(CaptureStrategy):
    name = "pyautogui-file"

    def __init__(self, timeout: float, screenshot: Optional[ScreenshotFn] = None, **kwargs) -> None:
        super().__init__(timeout, **kwargs)
        self._screenshot = screenshot or _pyautogui_screenshot

    async def _acquire(self, temp_dir: Path) -> CapturedFrame:
        temp_file = _temp_path(temp_dir, "temp")
        logger.debug("%s 截图到临时文件: %s", self.name, temp_file)
        await run_in_daemon_thread(self._screenshot, str(temp_file))
        if not temp_file.exists():
            raise StrategyFailure(self.name, "Screenshot file not created")
        payload = await asyncio.to_thread(temp_file.read_bytes)
        return CapturedFrame(payload, temp_file)


class ScriptCaptureStrategy(CaptureStrategy):
    """调用外部命令截图到临时文件；等待被取消（超时）时结束子进程。"""

    def __init__(
        self,
        name: str,
        command: CommandFactory,
        timeout: float,
        prefix: str = "script-temp",
        **kwargs,
    ) -> None:
        super().__init__(timeout, **kwargs)
        self.name = name
        self._command = command
        self._prefix = prefix

    async def _acquire(self, temp_dir: Path) -> CapturedFrame:
        temp_file = _temp_path(temp_dir, self._prefix)
        argv = [str(arg) for arg in self._command(temp_file)]
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
            raise

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="ignore").strip()
            raise StrategyFailure(
                self.name, f"{Path(argv[0]).name} exited with code {process.returncode}: {detail}"
            )
        if not temp_file.exists():
            raise StrategyFailure(self.name, "Screenshot file not created")
        payload = await asyncio.to_thread(temp_file.read_bytes)
        return CapturedFrame(payload, temp_file)


# 仅截取主屏幕
_POWERSHELL_SCRIPT = r"""
try {
  Add-Type -AssemblyName System.Windows.Forms,System.Drawing
  $primaryScreen = [System.Windows.Forms.Screen]::PrimaryScreen
  if ($null -eq $primaryScreen) {
    throw "No primary screen detected"
  }
  $bounds = $primaryScreen.Bounds
  if ($bounds.Width -le 0 -or $bounds.Height -le 0) {
    throw "Invalid screen bounds: $($bounds.Width)x$($bounds.Height)"
  }
  $bmp = New-Object System.Drawing.Bitmap $bounds.Width, $bounds.Height
  $graphics = [System.Drawing.Graphics]::FromImage($bmp)
  $graphics.CopyFromScreen($bounds.Left, $bounds.Top, 0, 0, $bounds.Size)
  $bmp.Save('__OUTPUT__', [System.Drawing.Imaging.ImageFormat]::Png)
  $graphics.Dispose()
  $bmp.Dispose()
} catch {
  Write-Error $_.Exception.Message
  exit 1
}
"""


def powershell_command(temp_file: Path) -> List[str]:
    # PowerShell 单引号字符串中用 '' 表示一个单引号
    target = str(temp_file).replace("'", "''")
    script = _POWERSHELL_SCRIPT.replace("__OUTPUT__", target)
    return ["powershell", "-NoProfile", "-ExecutionPolicy", "Bypass", "-Command", script]


def screencapture_command(temp_file: Path) -> List[str]:
    return ["screencapture", "-x", "-t", "png", str(temp_file)]


def powershell_strategy(timeout: float, **kwargs) -> ScriptCaptureStrategy:
    return ScriptCaptureStrategy("powershell", powershell_command, timeout, prefix="ps-temp", **kwargs)


def screencapture_strategy(timeout: float, **kwargs) -> ScriptCaptureStrategy:
    return ScriptCaptureStrategy(
        "screencapture", screencapture_command, timeout, prefix="sc-temp", **kwargs
    )


def default_strategies(
    settings: CaptureSettings,
    platform: str = sys.platform,
    screenshot: Optional[ScreenshotFn] = None,
) -> List[CaptureStrategy]:
    common = {
        "min_bytes": settings.min_image_bytes,
        "reject_uniform_frames": settings.reject_uniform_frames,
    }
    primary = settings.primary_timeout_seconds
    fallback = settings.script_timeout_seconds

    if platform == "win32":
        return [
            FileCaptureStrategy(primary, screenshot=screenshot, **common),
            powershell_strategy(fallback, **common),
        ]
    if platform == "darwin":
        return [
            BufferCaptureStrategy(primary, screenshot=screenshot, **common),
            screencapture_strategy(fallback, **common),
        ]
    return [BufferCaptureStrategy(primary, screenshot=screenshot, **common)]
