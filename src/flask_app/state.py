from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import threading


@dataclass
class AppState:
    # Lifecycle
    init_state: str = "Not Started"
    init_error: Optional[str] = None
    init_lock: threading.Lock = field(default_factory=threading.Lock)
    started_at: datetime = field(default_factory=datetime.utcnow)

    # IndustryPlannerService; built lazily by the entrypoint.
    service: Any = None


state = AppState()
