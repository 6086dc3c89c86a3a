from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict


class HealthReporter:

    def __init__(self, store_url: str, auth_mode: str) -> None:
        self.store_url = store_url
        self.auth_mode = auth_mode

    def status(self) -> Dict[str, str]:
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "store_url": self.store_url,
            "auth_mode": self.auth_mode,
        }
