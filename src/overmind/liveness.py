"""Advisory liveness marker for external monitors.

The marker exists while a worker process runs. It holds a small JSON
heartbeat, replaced atomically, and is never read back for correctness.
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class LivenessMarker:
    """Heartbeat file shared by all lanes.

    Args:
        path: Location of the marker file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def clear(self) -> None:
        """Remove the marker; a missing marker is fine."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Could not remove liveness marker {self.path}: {e}")

    def beat(self, lane: int, pid: int) -> None:
        """Write a heartbeat for a running worker."""
        payload = json.dumps({
            "lane": lane,
            "pid": pid,
            "timestamp": datetime.now().isoformat(),
        })
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.debug(f"Could not write liveness marker {self.path}: {e}")

    def read(self) -> Optional[dict]:
        """Return the current heartbeat, or None if there is none."""
        try:
            return json.loads(self.path.read_text())
        except (OSError, ValueError):
            return None

    def exists(self) -> bool:
        return self.path.exists()
