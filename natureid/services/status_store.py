from dataclasses import dataclass, field
from typing import Optional, List

MAX_LOG_LINES = 200


@dataclass
class StatusStore:
    identify_count: int = 0
    fallback_count: int = 0     # replies recovered with the degraded result
    last_error: Optional[str] = None
    last_identified: Optional[str] = None   # "<category>:<name>"
    logs: List[str] = field(default_factory=list)

    def log(self, msg: str):
        self.logs.append(msg)
        if len(self.logs) > MAX_LOG_LINES:
            self.logs = self.logs[-MAX_LOG_LINES:]
