from __future__ import annotations

import base64
import itertools
from typing import Any, Dict, List, Optional, Sequence, Tuple

import base58
import requests
from solders.hash import Hash
from solders.pubkey import Pubkey


class RpcError(RuntimeError):
    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


def memcmp(offset: int, raw: bytes) -> Dict[str, Any]:
    return {"memcmp": {"offset": offset, "bytes": base58.b58encode(raw).decode("ascii")}}


class RpcTransport:
    """Solana JSON-RPC over HTTP."""

    def __init__(self, rpc_url: str, timeout: float = 30, session: Optional[requests.Session] = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._ids = itertools.count(1)

    def __enter__(self) -> "RpcTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def call(self, method: str, params: Optional[list] = None, timeout: Optional[float] = None) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        try:
            r = self.session.post(
                self.rpc_url,
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=timeout if timeout is not None else self.timeout,
            )
            r.raise_for_status()
            res = r.json()
        except requests.RequestException as exc:
            raise RpcError(f"{method}: {exc}") from exc
        except ValueError as exc:
            raise RpcError(f"{method}: response is not JSON") from exc
        if not isinstance(res, dict):
            raise RpcError(f"{method}: malformed response")
        if "error" in res:
            err = res["error"] or {}
            raise RpcError(f"{method}: {err.get('message', err)}", code=err.get("code"), data=err.get("data"))
        if "result" not in res:
            raise RpcError(f"{method}: response has no result")
        return res["result"]

    def get_balance(self, pubkey: Pubkey, commitment: str = "confirmed") -> int:
        out = self.call("getBalance", [str(pubkey), {"commitment": commitment}])
        try:
            return int(out["value"])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise RpcError(f"getBalance: malformed result: {exc!r}") from exc

    def get_latest_blockhash(self, commitment: str = "confirmed", timeout: Optional[float] = None) -> Hash:
        out = self.call("getLatestBlockhash", [{"commitment": commitment}], timeout=timeout)
        try:
            return Hash.from_string(out["value"]["blockhash"])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise RpcError(f"getLatestBlockhash: malformed result: {exc!r}") from exc

    def send_transaction(
        self,
        raw_tx: bytes,
        preflight_commitment: str = "confirmed",
        skip_preflight: bool = False,
        timeout: Optional[float] = None,
    ) -> str:
        opts = {
            "encoding": "base64",
            "skipPreflight": skip_preflight,
            "preflightCommitment": preflight_commitment,
        }
        encoded = base64.b64encode(raw_tx).decode("ascii")
        sig = self.call("sendTransaction", [encoded, opts], timeout=timeout)
        if not isinstance(sig, str) or not sig:
            raise RpcError("sendTransaction: empty signature")
        return sig

    def get_program_accounts(
        self,
        program_id: Pubkey,
        filters: Sequence[Dict[str, Any]] = (),
        commitment: str = "confirmed",
    ) -> List[Tuple[Pubkey, bytes]]:
        cfg: Dict[str, Any] = {"encoding": "base64", "commitment": commitment}
        if filters:
            cfg["filters"] = list(filters)
        out = self.call("getProgramAccounts", [str(program_id), cfg])
        accounts: List[Tuple[Pubkey, bytes]] = []
        for item in out or []:
            try:
                address = Pubkey.from_string(item["pubkey"])
                data = base64.b64decode(item["account"]["data"][0], validate=True)
            except (KeyError, IndexError, TypeError, ValueError) as exc:
                raise RpcError(f"getProgramAccounts: malformed account entry: {exc}") from exc
            accounts.append((address, data))
        return accounts

    def get_signature_statuses(self, signatures: Sequence[str]) -> List[Optional[Dict[str, Any]]]:
        out = self.call(
            "getSignatureStatuses",
            [list(signatures), {"searchTransactionHistory": True}],
        )
        try:
            return list(out["value"])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise RpcError(f"getSignatureStatuses: malformed result: {exc!r}") from exc
