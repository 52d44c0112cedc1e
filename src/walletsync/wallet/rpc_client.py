import json
import logging
import requests
from typing import Any, Dict, List, Optional

from walletsync.config import RpcSettings
from walletsync.errors import RpcCallFailure
from walletsync.wallet.models import Balance, Transaction, TransactionType, TransferRequest

log = logging.getLogger(__name__)

STATUS_OK = "OK"


class WalletRpcClient:
    """
    JSON-RPC client for the wallet backend's RPC server.

    Every public method raises RpcCallFailure when the call does not succeed,
    whether the cause is the transport, the HTTP status, malformed JSON, a
    JSON-RPC error member or a non-OK status field.
    """

    def __init__(self, settings: RpcSettings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self._request_id = 0

    def close(self) -> None:
        self.session.close()

    def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Performs one JSON-RPC call and returns its `result` member.

        :param method: The backend operation name.
        :param params: Operation parameters, omitted when None.
        :raises RpcCallFailure: On any failure.
        """
        self._request_id += 1
        payload: Dict[str, Any] = {"jsonrpc": "2.0", "id": str(self._request_id), "method": method}
        if params is not None:
            payload["params"] = params

        try:
            response = self.session.post(self.settings.wallet_url, json=payload, timeout=self.settings.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as e:
            raise RpcCallFailure(method, str(e)) from e
        except (json.JSONDecodeError, ValueError) as e:
            raise RpcCallFailure(method, f"malformed response: {e}") from e

        if not isinstance(body, dict):
            raise RpcCallFailure(method, "response is not a JSON object")

        error = body.get("error")
        if error:
            if isinstance(error, dict):
                raise RpcCallFailure(method, str(error.get("message", error)), error.get("code"))
            raise RpcCallFailure(method, str(error))

        result = body.get("result")
        if result is None:
            result = {}
        if not isinstance(result, dict):
            raise RpcCallFailure(method, "result is not a JSON object")

        status = result.get("status", STATUS_OK)
        if status != STATUS_OK:
            raise RpcCallFailure(method, f"status '{status}'")

        log.debug(f"RPC call '{method}' succeeded.")
        return result

    #* --- Typed operations ---
    def query_address(self) -> str:
        result = self.call("getaddress")
        address = result.get("address")
        if not address:
            raise RpcCallFailure("getaddress", "no address in result")
        return address

    def query_balance(self) -> Balance:
        result = self.call("getbalance")
        try:
            return Balance(available=int(result["unlocked_balance"]), total=int(result["balance"]))
        except (KeyError, TypeError, ValueError) as e:
            raise RpcCallFailure("getbalance", f"unexpected result: {e}") from e

    def query_incoming_transfers(self) -> List[Transaction]:
        result = self.call("incoming_transfers", {"transfer_type": "all"})
        transfers = result.get("transfers") or []
        try:
            return [
                Transaction(
                    amount=int(transfer["amount"]),
                    type=TransactionType.RECEIVE,
                    payment_id=transfer.get("payment_id"),
                    raw=dict(transfer),
                )
                for transfer in transfers
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise RpcCallFailure("incoming_transfers", f"unexpected result: {e}") from e

    def send_transfer_split(self, request: TransferRequest) -> List[str]:
        params: Dict[str, Any] = {
            "destinations": [
                {"address": recipient.address, "amount": recipient.amount}
                for recipient in request.recipients
            ],
            "mixin": request.mix_count,
            "fee": request.fee,
            "unlock_time": 0,
        }
        if request.payment_id:
            params["payment_id"] = request.payment_id

        result = self.call("transfer_split", params)
        return list(result.get("tx_hash_list") or [])

    def save_wallet(self) -> None:
        self.call("store")

    def request_exit(self) -> None:
        self.call("stop_wallet")
