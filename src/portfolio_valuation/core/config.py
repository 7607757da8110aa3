"""Application configuration — loaded from config.json at project root."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class AppConfig:
    home_currency: str = "TWD"
    default_foreign_currency: str = "USD"
    stock_top_up_note_prefix: str = "補足買入"
    xirr_max_iterations: int = 100
    xirr_tolerance: float = 1e-7


_DEFAULTS = AppConfig()
_cached: Optional[AppConfig] = None


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (where pyproject.toml lives)."""
    current = Path(__file__).resolve().parent
    for _ in range(10):
        if (current / "pyproject.toml").exists():
            return current
        current = current.parent
    return Path.cwd()


def _config_path() -> Path:
    return _find_project_root() / "config.json"


def get_config() -> AppConfig:
    global _cached
    if _cached is not None:
        return _cached
    path = _config_path()
    if not path.exists():
        _cached = AppConfig()
        return _cached
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        _cached = AppConfig(
            home_currency=data.get("home_currency", _DEFAULTS.home_currency),
            default_foreign_currency=data.get(
                "default_foreign_currency", _DEFAULTS.default_foreign_currency
            ),
            stock_top_up_note_prefix=data.get(
                "stock_top_up_note_prefix", _DEFAULTS.stock_top_up_note_prefix
            ),
            xirr_max_iterations=int(data.get("xirr_max_iterations", _DEFAULTS.xirr_max_iterations)),
            xirr_tolerance=float(data.get("xirr_tolerance", _DEFAULTS.xirr_tolerance)),
        )
    except (OSError, ValueError, TypeError):
        _cached = AppConfig()
    return _cached


def save_config(cfg: AppConfig) -> None:
    global _cached
    _cached = cfg
    data = {
        "home_currency": cfg.home_currency,
        "default_foreign_currency": cfg.default_foreign_currency,
        "stock_top_up_note_prefix": cfg.stock_top_up_note_prefix,
        "xirr_max_iterations": cfg.xirr_max_iterations,
        "xirr_tolerance": cfg.xirr_tolerance,
    }
    _config_path().write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def reset_config_cache() -> None:
    global _cached
    _cached = None
