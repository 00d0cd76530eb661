"""
Run identity for flakeproof.

Each suite run gets a run ID that correlates log records, artifact
directories and report files.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any


def generate_run_id() -> str:
    """Generate a sortable, unique run identifier."""
    suffix = uuid.uuid4().hex[:12]
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"{timestamp}-{suffix}"


@dataclass
class RunContext:
    """Context information for one suite run."""

    run_id: str = field(default_factory=generate_run_id)
    start_time: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        """Seconds elapsed since the run started."""
        return time.time() - self.start_time

    @property
    def start_timestamp(self) -> str:
        return datetime.fromtimestamp(self.start_time, tz=timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "start_time": self.start_timestamp,
            "duration": self.duration,
            "metadata": self.metadata,
        }
