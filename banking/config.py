import logging
import os
from typing import Optional

from pydantic import BaseModel, Field

from .models import DAY


TRUTHY = {"1", "true", "yes", "on"}


class BankingSettings(BaseModel):
    transfer_window_ms: int = Field(default=DAY, gt=0)
    log_level: str = "INFO"
    seed_demo: bool = False

    @classmethod
    def from_env(cls) -> "BankingSettings":
        window = os.getenv("BANKING_TRANSFER_WINDOW_MS")
        return cls(
            transfer_window_ms=int(window) if window else DAY,
            log_level=os.getenv("BANKING_LOG_LEVEL", "INFO").upper(),
            seed_demo=os.getenv("BANKING_SEED_DEMO", "").strip().lower() in TRUTHY,
        )


def configure_logging(level: Optional[str] = None) -> None:
    level = level or BankingSettings.from_env().log_level
    resolved = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("banking").setLevel(resolved)
