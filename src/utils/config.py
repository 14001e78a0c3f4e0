from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from db.database import DB_PATH

DEFAULT_CARRIERS = ("DHL", "DPD", "Hermes", "GLS", "UPS")

_TRUE = {"1", "true", "yes", "on"}


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings, read once at start-up.

      - SHOP_DB_PATH: sqlite file, ":memory:" for a throwaway shop
      - SHOP_SEED: load the demo catalog into an empty database (default on)
      - SHOP_CURRENCY: symbol printed after amounts
      - SHOP_CARRIERS: comma separated carrier names offered for tracking
      - SHOP_LOG_FILE: extra plain-text log file
      - DEBUG: debug logging
    """

    db_path: str = DB_PATH
    seed_demo_data: bool = True
    currency_symbol: str = "€"
    carriers: Tuple[str, ...] = field(default=DEFAULT_CARRIERS)
    log_file: Optional[str] = None
    debug: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        carriers = tuple(
            c.strip() for c in env.get("SHOP_CARRIERS", "").split(",") if c.strip()
        )
        return cls(
            db_path=env.get("SHOP_DB_PATH") or DB_PATH,
            seed_demo_data=_flag(env.get("SHOP_SEED"), True),
            currency_symbol=env.get("SHOP_CURRENCY") or "€",
            carriers=carriers or DEFAULT_CARRIERS,
            log_file=env.get("SHOP_LOG_FILE") or None,
            debug=_flag(env.get("DEBUG"), False),
        )
