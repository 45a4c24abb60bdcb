"""
全局配置：从根目录的 settings.yaml 读取。

配置对象由调用方显式加载并传入服务，不再在导入时创建模块级单例。
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

CONFIG_PATH = Path(__file__).with_name("settings.yaml")

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "capture": {
        "max_retries": 3,
        "backoff_base_ms": 200,
        "primary_timeout_seconds": 5.0,
        "script_timeout_seconds": 10.0,
        "min_image_bytes": 1024,
        "reject_uniform_frames": False,
        "temp_max_age_seconds": 300.0,
    },
    "storage": {
        "data_dir": "",
        "primary_dirname": "screenshots",
        "secondary_dirname": "extra_screenshots",
        "temp_dirname": "snapqueue-screenshots",
        "max_screenshots": 5,
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
    },
}


@dataclass
class CaptureSettings:
    max_retries: int
    backoff_base_ms: int
    primary_timeout_seconds: float
    script_timeout_seconds: float
    min_image_bytes: int
    reject_uniform_frames: bool
    temp_max_age_seconds: float


@dataclass
class StorageSettings:
    data_dir: str
    primary_dirname: str
    secondary_dirname: str
    temp_dirname: str
    max_screenshots: int

    def data_root(self) -> Path:
        """data_dir 为空时使用 ~/.snapqueue"""
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        return Path.home() / ".snapqueue"

    def primary_dir(self) -> Path:
        return self.data_root() / self.primary_dirname

    def secondary_dir(self) -> Path:
        return self.data_root() / self.secondary_dirname

    def temp_root(self) -> Path:
        return Path(tempfile.gettempdir()) / self.temp_dirname


@dataclass
class LoggingSettings:
    level: str
    format: str


@dataclass
class Settings:
    capture: CaptureSettings
    storage: StorageSettings
    logging: LoggingSettings


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    data = defaults.copy()
    data.update(overrides or {})
    return data


def build_settings(raw: Dict[str, Any]) -> Settings:
    raw = raw or {}
    capture = CaptureSettings(**_merge(DEFAULTS["capture"], raw.get("capture")))
    storage = StorageSettings(**_merge(DEFAULTS["storage"], raw.get("storage")))
    logging_ = LoggingSettings(**_merge(DEFAULTS["logging"], raw.get("logging")))
    return Settings(capture=capture, storage=storage, logging=logging_)


def default_settings() -> Settings:
    return build_settings({})


def load_settings(path: Path = CONFIG_PATH) -> Settings:
    if not path.exists():
        raise FileNotFoundError(f"配置文件 {path} 不存在")
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return build_settings(raw)
