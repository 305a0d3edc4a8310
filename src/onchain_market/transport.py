"""
Value transfer backends

The ledger never holds balances itself. It moves native currency through a
ValueTransport, and uses snapshot()/restore() to undo every transfer of an
operation that fails part way through.
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from .exceptions import TransportError

logger = logging.getLogger(__name__)


class ValueTransport(ABC):
    """Interface every value transfer backend implements"""

    @abstractmethod
    def transfer(self, sender: str, recipient: str, amount: int):
        """Move ``amount`` from sender to recipient or raise TransportError"""

    @abstractmethod
    def balance_of(self, identity: str) -> int:
        pass

    @abstractmethod
    def snapshot(self):
        """Opaque token describing the current state"""

    @abstractmethod
    def restore(self, token):
        """Undo every transfer made since ``token`` was taken"""

    def commit(self):
        """Called when no open operation can roll back any more"""
        pass


class LocalBank(ValueTransport):
    """In-memory balances, standing in for the host chain's native currency

    A recipient may register a receive hook, called after the funds land.
    A hook that raises makes the transfer fail, exactly like a payable
    fallback that reverts. Hooks are free to call back into the ledger.

    Balance changes are journaled, so snapshot() and restore() cost the
    number of changes made in between, not the number of accounts.
    """

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self._balances = dict(balances or {})
        self._hooks = {}
        self._rejecting = set()
        self._changes: List[Tuple[str, Optional[int]]] = []

    def deposit(self, identity: str, amount: int):
        if amount < 0:
            raise ValueError("Deposit amount must be non-negative")
        self._set(identity, self.balance_of(identity) + amount)

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def on_receive(self, identity: str, hook: Callable[[str, int], None]):
        """Register ``hook(sender, amount)`` to run whenever identity is paid"""
        self._hooks[identity] = hook

    def reject(self, identity: str, rejecting: bool = True):
        """Make every transfer to ``identity`` fail"""
        if rejecting:
            self._rejecting.add(identity)
        else:
            self._rejecting.discard(identity)

    def transfer(self, sender: str, recipient: str, amount: int):
        if amount < 0:
            raise TransportError(f"Negative transfer amount: {amount}")
        if recipient in self._rejecting:
            raise TransportError(f"{recipient} rejects payments")

        available = self.balance_of(sender)
        if available < amount:
            raise TransportError(
                f"{sender} has {available}, cannot send {amount}"
            )

        before = self.snapshot()
        self._set(sender, available - amount)
        self._set(recipient, self.balance_of(recipient) + amount)

        hook = self._hooks.get(recipient)
        if hook is None:
            return
        try:
            hook(sender, amount)
        except Exception as e:
            self.restore(before)
            logger.warning(f"Receive hook for {recipient} failed: {e}")
            raise TransportError(f"{recipient} rejected the transfer: {e}") from e

    def _set(self, identity: str, balance: int):
        self._changes.append((identity, self._balances.get(identity)))
        self._balances[identity] = balance

    def snapshot(self) -> int:
        return len(self._changes)

    def restore(self, token: int):
        while len(self._changes) > token:
            identity, previous = self._changes.pop()
            if previous is None:
                del self._balances[identity]
            else:
                self._balances[identity] = previous

    def commit(self):
        self._changes.clear()
