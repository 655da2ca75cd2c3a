import logging
import logging.handlers
import os
import sys
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

BASE = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
PACKAGE_DIR = os.path.abspath(os.path.dirname(__file__))
DATA_DIR = os.path.join(PACKAGE_DIR, "data")

# ---------------- Logging ----------------


def get_logger(name="composer", log_file=None):
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(logging.INFO)
    fmt = logging.Formatter(
        '{"ts":"%(asctime)s","level":"%(levelname)s","step":"%(name)s","msg":"%(message)s"}'
    )
    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(fmt)
    logger.addHandler(sh)
    if log_file:
        os.makedirs(os.path.dirname(log_file), exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(log_file, maxBytes=5_000_000, backupCount=5)
        fh.setFormatter(fmt)
        logger.addHandler(fh)
    return logger


log = get_logger("composer")

# ---------------- Config Models ----------------


class StorageCfg(BaseModel):
    base_dir: str = Field(default_factory=lambda: BASE)
    data_dir: str = Field(default_factory=lambda: DATA_DIR)
    exports_dir: str = "exports"
    logs_dir: str = "logs"


class RenderCfg(BaseModel):
    width: int = Field(1920, gt=0)
    height: int = Field(1080, gt=0)
    fps: int = Field(30, gt=0, le=240)
    preview_scale: float = Field(0.25, gt=0, le=1.0)
    background: str = "#000000"
    codec: str = "libx264"
    default_item_duration: float = Field(5.0, gt=0)


class PlaybackCfg(BaseModel):
    tick_seconds: float = Field(0.033, gt=0)
    min_item_duration: float = Field(0.1, gt=0)


class InjectorCfg(BaseModel):
    background_markers: List[str] = ["CustomerBg"]
    image_markers: List[str] = ["CustomerLogo"]
    transparent_sentinel: str = "transparent"
    default_background: str = "#184cb4"
    max_depth: int = Field(32, ge=1, le=1024)


class DocumentsCfg(BaseModel):
    fetch_timeout_sec: float = Field(15.0, gt=0)
    max_workers: int = Field(2, ge=1, le=16)


class DispatchCfg(BaseModel):
    default_debounce_ms: int = Field(100, ge=0)
    default_max_instances: int = Field(10, ge=1)
    default_performance: str = "medium"


class GlobalCfg(BaseModel):
    storage: StorageCfg = Field(default_factory=StorageCfg)
    render: RenderCfg = Field(default_factory=RenderCfg)
    playback: PlaybackCfg = Field(default_factory=PlaybackCfg)
    injector: InjectorCfg = Field(default_factory=InjectorCfg)
    documents: DocumentsCfg = Field(default_factory=DocumentsCfg)
    dispatch: DispatchCfg = Field(default_factory=DispatchCfg)


def load_yaml(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_env() -> dict:
    load_dotenv(os.path.join(BASE, ".env"))
    env = {k: v for k, v in os.environ.items()}
    return env


def _resolve_config_path(path: Optional[str]) -> Optional[str]:
    if path:
        return path
    env_path = load_env().get("COMPOSER_CONFIG")
    if env_path:
        return env_path
    for name in ("global.yaml", "global.example.yaml"):
        candidate = os.path.join(BASE, "conf", name)
        if os.path.exists(candidate):
            return candidate
    return None


def load_config(path: Optional[str] = None) -> GlobalCfg:
    """
    Load the engine configuration.

    Args:
        path: Optional explicit YAML path. Falls back to $COMPOSER_CONFIG,
            conf/global.yaml, conf/global.example.yaml and finally the defaults.

    Returns:
        Validated GlobalCfg
    """
    resolved = _resolve_config_path(path)
    raw: Dict[str, Any] = {}
    if resolved:
        raw = load_yaml(resolved)
        if not isinstance(raw, dict):
            raise ValueError(f"YAML at {resolved} must be a mapping/object.")

    # Relative data_dir resolves against the package, "." base_dir against the repo
    storage = raw.get("storage") or {}
    if storage.get("base_dir") == ".":
        storage["base_dir"] = BASE
    if storage.get("data_dir") and not os.path.isabs(storage["data_dir"]):
        storage["data_dir"] = os.path.join(PACKAGE_DIR, storage["data_dir"])

    try:
        cfg = GlobalCfg(**raw)
    except ValidationError as e:
        log.error(f"Config validation failed: {e}")
        raise
    return cfg
