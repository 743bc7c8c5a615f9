from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from opscore.models import SkuCategory

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "OPS_DATA_DIR"

DEFAULT_PLATE_SIZES: dict[SkuCategory, int] = {
    SkuCategory.STEAM: 8,
    SkuCategory.KURKURE: 6,
    SkuCategory.ROLL: 2,
}
DEFAULT_LITRES_PER_PACKET = 2.3


@dataclass(frozen=True)
class ForecastPolicy:
    coverage_days: int = 3
    top_seller_share: float = 10.0
    trend_up_factor: float = 1.15
    trend_down_factor: float = 0.85
    top_seller_buffer: float = 1.5
    default_buffer: float = 1.2
    short_window_days: int = 7
    long_window_days: int = 90


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    plate_sizes: Mapping[SkuCategory, int] = field(default_factory=lambda: dict(DEFAULT_PLATE_SIZES))
    litres_per_packet: float = DEFAULT_LITRES_PER_PACKET
    forecast: ForecastPolicy = field(default_factory=ForecastPolicy)


def _default_data_dir() -> Path:
    return Path.home() / ".branch_ops"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable %s: %s", cfg, e)
            return {}
    return {}


def _parse_plate_sizes(raw: Any) -> dict[SkuCategory, int]:
    if not isinstance(raw, Mapping):
        return dict(DEFAULT_PLATE_SIZES)
    out: dict[SkuCategory, int] = {}
    for k, v in raw.items():
        try:
            out[SkuCategory(k)] = int(v)
        except (ValueError, TypeError):
            logger.warning("Skipping invalid plate size entry %r=%r", k, v)
    return out


def _parse_forecast(raw: Any) -> ForecastPolicy:
    if not isinstance(raw, Mapping):
        return ForecastPolicy()
    known = set(ForecastPolicy.__dataclass_fields__)
    return ForecastPolicy(**{k: v for k, v in raw.items() if k in known})


def build_settings(data_dir: Path, persisted: Mapping[str, Any]) -> Settings:
    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "ops.db",
        plate_sizes=_parse_plate_sizes(persisted.get("plate_sizes")),
        litres_per_packet=float(persisted.get("litres_per_packet", DEFAULT_LITRES_PER_PACKET)),
        forecast=_parse_forecast(persisted.get("forecast")),
    )


def persist_settings(
    data_dir_str: str,
    *,
    plate_sizes: Mapping[SkuCategory, int] | None = None,
    litres_per_packet: float | None = None,
) -> Path:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload: dict[str, Any] = _load_persisted_settings(data_dir)
    payload["data_dir"] = str(data_dir)
    if plate_sizes is not None:
        payload["plate_sizes"] = {SkuCategory(k).value: int(v) for k, v in plate_sizes.items()}
    if litres_per_packet is not None:
        payload["litres_per_packet"] = float(litres_per_packet)
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    get_settings.cache_clear()
    return cfg


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Priority order:
    # 1) Environment variable
    # 2) Persisted settings in default folder
    # 3) Default folder
    if os.getenv(ENV_DATA_DIR):
        data_dir = Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
        persisted = _load_persisted_settings(data_dir)
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()
        if data_dir != default_dir:
            persisted = {**persisted, **_load_persisted_settings(data_dir)}

    data_dir.mkdir(parents=True, exist_ok=True)
    settings = build_settings(data_dir, persisted)
    logger.debug("Loaded settings: %s", asdict(settings))
    return settings
