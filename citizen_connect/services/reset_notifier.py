"""
Password-reset delivery boundary.

Mail transport is outside the core. The default notifier only logs that a
link was produced; deployments plug in a real sender by implementing
ResetNotifier.
"""

import logging
from abc import ABC, abstractmethod

from citizen_connect.models.user import UserRecord

logger = logging.getLogger(__name__)


class ResetNotifier(ABC):
    """
    Contract:
    - send_reset_link MAY raise; callers log and continue so the
      forgot-password response never reveals delivery problems.
    """

    @abstractmethod
    def send_reset_link(self, user: UserRecord, reset_url: str) -> None:
        raise NotImplementedError


class LoggingResetNotifier(ResetNotifier):
    """
    Development notifier: writes the reset link to the log.

    The link carries a live reset token, so it is only logged when
    log_links is set (wired to DEBUG). Otherwise the log says that a link
    was produced and that no delivery is configured.
    """

    def __init__(self, log_links: bool = False):
        self.log_links = log_links

    def send_reset_link(self, user: UserRecord, reset_url: str) -> None:
        if self.log_links:
            logger.info(f"Password reset link for {user.email}: {reset_url}")
        else:
            logger.warning(
                f"Password reset link generated for user {user.id} but mail delivery is not configured; "
                f"set DEBUG=true to log reset links"
            )
