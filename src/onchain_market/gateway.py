"""
Settlement gateway client: value transfers over HTTP

Used when native-currency balances live with an external settlement service
rather than in process. Each transfer is journaled so that an aborted ledger
operation can be compensated by reversing the transfers it made.
"""
import requests
import logging
from typing import List, Optional

from .config import Config, ConfigurationError, get_config
from .exceptions import TransportError
from .transport import ValueTransport

logger = logging.getLogger(__name__)


class SettlementGateway(ValueTransport):
    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()
        if not self.config.gateway_url:
            raise ConfigurationError("MARKETPLACE_GATEWAY_URL not set")
        self.base_url = self.config.gateway_url
        self.timeout = self.config.timeout
        self.headers = {
            'Authorization': f'Bearer {self.config.gateway_token}',
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        }
        self._journal: List[str] = []

    def _check(self, response, action: str) -> dict:
        if response.status_code in (200, 201):
            try:
                data = response.json()
            except ValueError as e:
                raise TransportError(f"{action}: gateway returned a non-JSON body") from e
            if not isinstance(data, dict):
                raise TransportError(f"{action}: unexpected gateway response {data!r}")
            return data
        if response.status_code == 401:
            raise TransportError(f"{action}: gateway rejected credentials")
        if response.status_code == 402:
            raise TransportError(f"{action}: insufficient funds")
        raise TransportError(f"{action}: HTTP {response.status_code} {response.text}")

    def transfer(self, sender: str, recipient: str, amount: int):
        url = f"{self.base_url}/transfers"
        payload = {'from': sender, 'to': recipient, 'amount': str(amount)}
        action = f"Transfer {amount} {sender} -> {recipient}"

        try:
            response = requests.post(url, headers=self.headers, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"{action} failed: {e}")
            raise TransportError(f"{action}: {e}") from e

        data = self._check(response, action)
        transfer_id = data.get('id')
        if not transfer_id:
            raise TransportError(f"{action}: gateway returned no transfer id")
        self._journal.append(transfer_id)
        logger.debug(f"{action} settled as {transfer_id}")

    def balance_of(self, identity: str) -> int:
        url = f"{self.base_url}/accounts/{identity}"
        try:
            response = requests.get(url, headers=self.headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Balance lookup for {identity}: {e}") from e

        if response.status_code == 404:
            return 0
        data = self._check(response, f"Balance lookup for {identity}")
        try:
            return int(data.get('balance', 0))
        except (TypeError, ValueError) as e:
            raise TransportError(f"Balance lookup for {identity}: bad balance {data.get('balance')!r}") from e

    def snapshot(self) -> int:
        return len(self._journal)

    def restore(self, token: int):
        """Reverse every transfer made after ``token``, newest first"""
        failed = []
        while len(self._journal) > token:
            transfer_id = self._journal.pop()
            url = f"{self.base_url}/transfers/{transfer_id}/reverse"
            try:
                response = requests.post(url, headers=self.headers, timeout=self.timeout)
                self._check(response, f"Reverse {transfer_id}")
            except (requests.exceptions.RequestException, TransportError) as e:
                logger.error(f"Could not reverse transfer {transfer_id}: {e}")
                failed.append(transfer_id)

        if failed:
            raise TransportError(f"Unreversed transfers: {', '.join(failed)}")

    def commit(self):
        """Forget journaled transfers once no operation can roll them back"""
        self._journal.clear()
