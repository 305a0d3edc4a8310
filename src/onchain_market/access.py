"""
Single-administrator access control
"""
import logging
from typing import Optional

from .events import AdminTransferred, EventLog
from .exceptions import InvalidAddress, NotAdmin
from .models import ZERO_ADDRESS

logger = logging.getLogger(__name__)


class AccessControl:
    """Holds the administrator identity and guards privileged operations"""

    def __init__(self, admin: str, events: Optional[EventLog] = None):
        if admin == ZERO_ADDRESS:
            raise InvalidAddress(admin)
        self.events = events if events is not None else EventLog()
        self._admin = admin
        self.events.emit(AdminTransferred(ZERO_ADDRESS, admin))

    def current_admin(self) -> str:
        return self._admin

    def require_admin(self, caller: str):
        """Fail with NotAdmin unless ``caller`` is the administrator"""
        if caller != self._admin:
            raise NotAdmin(caller)

    def transfer_admin(self, caller: str, new_admin: str):
        self.require_admin(caller)
        if new_admin == ZERO_ADDRESS:
            raise InvalidAddress(new_admin)

        previous, self._admin = self._admin, new_admin
        self.events.emit(AdminTransferred(previous, new_admin))
        logger.info(f"Admin transferred from {previous} to {new_admin}")

    def snapshot(self) -> str:
        return self._admin

    def restore(self, admin: str):
        self._admin = admin
