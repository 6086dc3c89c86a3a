"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

CURRENT_LEG = "current"
HISTORY_LEG = "history"


@dataclass(frozen=True, slots=True)
class Credential:
    """Short-lived store access token returned by the issuance endpoint."""

    token: str
    obtained_at: datetime
    user_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class MotionReading:
    magnitude: float = 0.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    gyro_x: float = 0.0
    gyro_y: float = 0.0
    gyro_z: float = 0.0
    angle_x: float = 0.0
    angle_y: float = 0.0
    angle_z: float = 0.0

    def to_document(self) -> Dict[str, float]:
        return {
            "magnitude": self.magnitude,
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "gyro_x": self.gyro_x,
            "gyro_y": self.gyro_y,
            "gyro_z": self.gyro_z,
            "angle_x": self.angle_x,
            "angle_y": self.angle_y,
            "angle_z": self.angle_z,
        }


@dataclass(frozen=True, slots=True)
class SensorBlock:
    temperature: float
    humidity: float
    motion: MotionReading = field(default_factory=MotionReading)
    sound_raw: int = 0


@dataclass(frozen=True, slots=True)
class SensorReading:
    """A single normalized telemetry record from one device."""

    device_id: str
    timestamp_millis: int
    received_at: datetime
    sensors: SensorBlock

    @property
    def current_path(self) -> str:
        return f"devices/{self.device_id}/current"

    @property
    def history_path(self) -> str:
        return f"devices/{self.device_id}/history/{self.timestamp_millis}"

    def to_document(self) -> Dict[str, Any]:
        """Shape the reading the way it is stored under both store paths."""
        return {
            "device_id": self.device_id,
            "timestamp": self.timestamp_millis,
            "sensors": {
                "motion": self.sensors.motion.to_document(),
                "sound": {"raw": self.sensors.sound_raw},
                "temperature": self.sensors.temperature,
                "humidity": self.sensors.humidity,
            },
            "received_at": self.received_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class WriteResult:
    """Outcome of a single upsert against the store."""

    leg: str
    path: str
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class IngestResult:
    device_id: str
    timestamp_millis: int
    current: WriteResult
    history: WriteResult

    @property
    def results(self) -> Tuple[WriteResult, WriteResult]:
        return (self.current, self.history)

    @property
    def failed_legs(self) -> Tuple[str, ...]:
        return tuple(result.leg for result in self.results if not result.ok)

    @property
    def outcome(self) -> str:
        failed = self.failed_legs
        if not failed:
            return "ok"
        if len(failed) == 2:
            return "both_failed"
        return f"{failed[0]}_failed"
