from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

load_dotenv()

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


class Settings(BaseModel):
    app_title: str = Field(default=os.getenv("FRAUD_SIM_APP_TITLE", "Fraud Loss Reserve Simulator"))
    default_trials: int = Field(default=int(os.getenv("FRAUD_SIM_DEFAULT_TRIALS", "10000")), gt=0)
    min_trials: int = Field(default=int(os.getenv("FRAUD_SIM_MIN_TRIALS", "1000")), gt=0)
    max_trials: int = Field(default=int(os.getenv("FRAUD_SIM_MAX_TRIALS", "20000")), gt=0)
    trials_step: int = Field(default=int(os.getenv("FRAUD_SIM_TRIALS_STEP", "1000")), gt=0)
    default_confidence: int = Field(default=int(os.getenv("FRAUD_SIM_DEFAULT_CONFIDENCE", "95")), ge=80, le=99)
    histogram_bins: int = Field(default=int(os.getenv("FRAUD_SIM_HISTOGRAM_BINS", "50")), gt=0)
    histogram_rounding: float = Field(default=float(os.getenv("FRAUD_SIM_HISTOGRAM_ROUNDING", "1000")), gt=0)
    random_seed: Optional[int] = Field(default_factory=lambda: _optional_int("FRAUD_SIM_SEED"))
    log_level: str = Field(default=os.getenv("FRAUD_SIM_LOG_LEVEL", "INFO"), validate_default=True)

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
        return level

    @model_validator(mode="after")
    def _trials_in_range(self) -> "Settings":
        if not self.min_trials <= self.default_trials <= self.max_trials:
            raise ValueError(
                f"default_trials ({self.default_trials}) must lie between "
                f"min_trials ({self.min_trials}) and max_trials ({self.max_trials})"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


@dataclass(frozen=True)
class Scenario:
    name: str
    avg_events: float
    avg_loss: float
    volatility: float


SCENARIOS: Dict[str, Scenario] = {
    "baseline": Scenario("Baseline", avg_events=150, avg_loss=350, volatility=40),
    "holiday": Scenario("High-Risk Holiday Season", avg_events=300, avg_loss=450, volatility=60),
    "launch": Scenario("New Product Launch", avg_events=200, avg_loss=250, volatility=80),
}

DEFAULT_SCENARIO = "baseline"

# Dashboard slider ranges: (min, max, step)
EVENTS_RANGE = (50, 500, 10)
LOSS_RANGE = (100, 1000, 10)
VOLATILITY_RANGE = (10, 100, 5)
CONFIDENCE_RANGE = (80, 99, 1)
