"""Desktop notifications for test verdicts.

Uses ``notify-send`` when it is installed. A missing command, a disabled
notifier or a failing call all drop the notification silently (apart
from logging); nothing is retried.
"""

import logging
import os
import shutil
import subprocess
from typing import Optional

from .classifier import TestOutcome, Verdict
from .config import NotifyConfig

logger = logging.getLogger(__name__)

URGENCY_LOW = "low"
URGENCY_NORMAL = "normal"
URGENCY_CRITICAL = "critical"


def urgency_for(priority: int) -> str:
    """Map a numeric priority onto a notify-send urgency level."""
    if priority >= 2:
        return URGENCY_CRITICAL
    if priority < 0:
        return URGENCY_LOW
    return URGENCY_NORMAL


class Notifier:
    """Send pass/fail notifications to the desktop.

    Args:
        config: Notification settings.
    """

    FAIL_TITLE = "FAIL"
    PASS_TITLE = "Pass"
    FAIL_ICON = "fail.png"
    PASS_ICON = "pass.png"

    def __init__(self, config: Optional[NotifyConfig] = None):
        self.config = config or NotifyConfig()

    def is_available(self) -> bool:
        """Check if the notification command is installed."""
        return shutil.which(self.config.command) is not None

    def build_command(
        self,
        title: str,
        message: str,
        icon: str,
        priority: int = 0,
        sticky: bool = False,
    ) -> list[str]:
        """Build the notification command line."""
        expire_ms = 0 if sticky else int(self.config.expiration_seconds * 1000)
        icon_path = os.path.join(os.path.expanduser(self.config.image_folder), icon)
        return [
            self.config.command,
            "-t", str(expire_ms),
            "-u", urgency_for(priority),
            "-i", icon_path,
            title,
            message,
        ]

    def notify(
        self,
        title: str,
        message: str,
        icon: str,
        priority: int = 0,
        sticky: bool = False,
    ) -> bool:
        """Show a notification.

        Returns:
            True if the notification command ran successfully.
        """
        if not self.config.enabled:
            logger.debug(f"Notifications disabled, dropping: {title}")
            return False

        if not self.is_available():
            logger.debug(f"{self.config.command} not found, dropping: {title}")
            return False

        cmd = self.build_command(title, message, icon, priority, sticky)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=10)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Notification failed: {e}")
            return False

        if result.returncode != 0:
            logger.warning(f"Notification failed: {result.stderr.strip()}")
            return False
        return True

    def notify_fail(self, outcome: TestOutcome) -> bool:
        return self.notify(self.FAIL_TITLE, outcome.summary, self.FAIL_ICON, priority=2)

    def notify_pass(self, outcome: TestOutcome) -> bool:
        return self.notify(self.PASS_TITLE, outcome.summary, self.PASS_ICON)

    def notify_outcome(self, outcome: TestOutcome) -> bool:
        """Dispatch on the verdict; unrecognized outcomes are ignored."""
        if outcome.verdict is Verdict.FAIL:
            return self.notify_fail(outcome)
        if outcome.verdict is Verdict.PASS:
            return self.notify_pass(outcome)
        return False
