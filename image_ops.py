"""
图像通用操作：截图校验与编码。

提供：
- PNG 签名与最小尺寸校验
- 任意输入到 PIL Image 的转换
- 图像与 bytes/base64 data URI 的互转
- 纯色画面检测等基础指标
"""

from __future__ import annotations

import base64
import io
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image, ImageFile, UnidentifiedImageError

ImageSource = Union[str, Path, np.ndarray, Image.Image, ImageFile.ImageFile]

# 137 80 78 71 13 10 26 10
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# 真实截图至少 1KB
MIN_CAPTURE_BYTES = 1024


def has_png_signature(payload: bytes) -> bool:
    if payload is None or len(payload) < len(PNG_SIGNATURE):
        return False
    return bytes(payload[: len(PNG_SIGNATURE)]) == PNG_SIGNATURE


def is_valid_image(payload: bytes, min_bytes: int = MIN_CAPTURE_BYTES) -> bool:
    """签名正确且长度不小于 min_bytes；签名匹配不代表图片可用。"""
    return has_png_signature(payload) and len(payload) >= min_bytes


def load_image(source: ImageSource) -> Image.Image:
    if isinstance(source, Image.Image):
        return source.copy()
    if isinstance(source, np.ndarray):
        return Image.fromarray(source)
    if isinstance(source, (str, Path)):
        return Image.open(source)
    if isinstance(source, ImageFile.ImageFile):
        return source.copy()
    raise TypeError(f"Unsupported image source: {type(source)}")


def image_to_bytes(image: Image.Image, fmt: str = "PNG") -> bytes:
    with io.BytesIO() as buffer:
        image.save(buffer, format=fmt)
        return buffer.getvalue()


def encode_capture_payload(source: ImageSource, fmt: str = "PNG") -> bytes:
    image = load_image(source)
    return image_to_bytes(image, fmt=fmt)


def decode_capture_payload(payload: bytes) -> Optional[np.ndarray]:
    with io.BytesIO(payload) as buffer:
        try:
            with Image.open(buffer) as img:
                rgb = img.convert("RGB")
        except (UnidentifiedImageError, OSError):
            return None
    return np.array(rgb)


def is_uniform_frame(payload: bytes) -> bool:
    """
    整张图只有一种颜色时返回 True。

    macOS 缺少录屏权限时截图接口会返回全黑画面；无法解码的数据同样视为不可用。
    """
    frame = decode_capture_payload(payload)
    if frame is None or frame.size == 0:
        return True
    return bool(np.all(frame == frame.reshape(-1, frame.shape[-1])[0]))


def to_data_uri(payload: bytes, mime: str = "image/png") -> str:
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{mime};base64,{encoded}"
