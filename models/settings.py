from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class IntervalUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


class IntervalSetting(BaseModel):
    value: int = Field(ge=0)
    unit: IntervalUnit = IntervalUnit.MINUTES


class SrsSettings(BaseModel):
    initial_interval: IntervalSetting
    second_interval: IntervalSetting
    lapse_interval: IntervalSetting
    required_streak: int = Field(default=2, ge=1)
    penalty: int = Field(default=2, ge=0)

    @classmethod
    def merged(cls, defaults: Dict[str, Any], saved: Optional[Dict[str, Any]]) -> "SrsSettings":
        """Overlay a saved settings record on the configured defaults.

        Interval tables merge field by field; missing scalar values fall back
        to the default.
        """
        saved = saved or {}
        data: Dict[str, Any] = {}
        for key in ("initial_interval", "second_interval", "lapse_interval"):
            data[key] = {**defaults[key], **(saved.get(key) or {})}
        for key in ("required_streak", "penalty"):
            value = saved.get(key)
            data[key] = defaults[key] if value is None else value
        return cls.model_validate(data)
