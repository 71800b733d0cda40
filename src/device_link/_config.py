from __future__ import annotations

from typing import TypedDict


class Config(TypedDict, total=False):
    # Timeout applied to every upstream HTTP call
    request_timeout_seconds: float

    # Used when the device code response carries no interval
    default_interval_seconds: int

    # Added to the stored interval whenever upstream answers slow_down
    slow_down_increment_seconds: int

    # Terminal flows older than this are deleted by the reaper
    retention_seconds: int

    reaper_interval_seconds: float


DEFAULT_CONFIG: Config = {
    "request_timeout_seconds": 10.0,
    "default_interval_seconds": 5,
    "slow_down_increment_seconds": 5,
    "retention_seconds": 60 * 60,
    "reaper_interval_seconds": 60.0,
}
