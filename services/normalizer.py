"""Coercion of raw device payloads into canonical sensor readings."""

from __future__ import annotations

import logging
import math
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from models.records import MotionReading, SensorBlock, SensorReading
from services.errors import ValidationError

logger = logging.getLogger(__name__)

_MOTION_FIELDS = {
    "magnitude": "motion_magnitude",
    "x": "motion_x",
    "y": "motion_y",
    "z": "motion_z",
    "gyro_x": "gyro_x",
    "gyro_y": "gyro_y",
    "gyro_z": "gyro_z",
    "angle_x": "angle_x",
    "angle_y": "angle_y",
    "angle_z": "angle_z",
}

# Characters the store does not allow inside a key (including ASCII control
# characters), plus the path separator.
_FORBIDDEN_ID_CHARS = re.compile(r"[/.#$\[\]\x00-\x1f\x7f]")


def _coerce_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        try:
            parsed = float(candidate)
        except ValueError:
            return None
    else:
        return None
    return parsed if math.isfinite(parsed) else None


def _coerce_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        try:
            return int(candidate)
        except ValueError:
            pass
    parsed = _coerce_float(value)
    if parsed is None:
        return None
    return int(parsed)


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class TelemetryNormalizer:
    """Strict on temperature and humidity, permissive on everything else."""

    def __init__(
        self,
        default_device_id: str = "MXCHIP_001",
        clock: Callable[[], datetime] | None = None,
        millis_clock: Callable[[], int] | None = None,
    ) -> None:
        self.default_device_id = default_device_id
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._millis_clock = millis_clock or _epoch_millis

    def normalize(self, raw: Mapping[str, Any]) -> SensorReading:
        if not isinstance(raw, Mapping):
            raise ValidationError("body", "payload must be a key-value object")

        temperature = self._required_float(raw, "temperature")
        humidity = self._required_float(raw, "humidity")
        device_id = self._device_id(raw.get("device_id"))

        timestamp = _coerce_int(raw.get("timestamp"))
        if timestamp is None:
            timestamp = self._millis_clock()
            logger.warning(
                "Unparseable device timestamp, substituting receive time",
                extra={"device_id": device_id, "timestamp": timestamp},
            )

        motion = MotionReading(
            **{attr: self._optional_float(raw, key) for attr, key in _MOTION_FIELDS.items()}
        )
        sound = _coerce_int(raw.get("sound"))

        return SensorReading(
            device_id=device_id,
            timestamp_millis=timestamp,
            received_at=self._clock(),
            sensors=SensorBlock(
                temperature=temperature,
                humidity=humidity,
                motion=motion,
                sound_raw=sound if sound is not None else 0,
            ),
        )

    @staticmethod
    def _required_float(raw: Mapping[str, Any], key: str) -> float:
        if key not in raw or raw[key] is None:
            raise ValidationError(key, "field is required")
        parsed = _coerce_float(raw[key])
        if parsed is None:
            raise ValidationError(key, f"expected a number, got {raw[key]!r}")
        return parsed

    @staticmethod
    def _optional_float(raw: Mapping[str, Any], key: str) -> float:
        parsed = _coerce_float(raw.get(key))
        return parsed if parsed is not None else 0.0

    def _device_id(self, value: Any) -> str:
        if value is None:
            return self.default_device_id
        candidate = str(value).strip()
        if not candidate:
            return self.default_device_id
        if _FORBIDDEN_ID_CHARS.search(candidate):
            raise ValidationError("device_id", f"contains characters not allowed in a store key: {candidate!r}")
        return candidate
