from __future__ import annotations
from typing import Any, Mapping, Sequence

from ..domain.errors import DecodeError
from ..domain.models import RawLog
from ..domain.value_types import Address, Topic0, TxHash

def _to_hex_block(n: int) -> str: return hex(int(n))
def _is_hash(x: object) -> bool: return isinstance(x, str) and x.startswith("0x") and len(x) == 66
def _is_address(x: object) -> bool: return isinstance(x, str) and x.startswith("0x") and len(x) == 42

def _hex_int(v: object, name: str) -> int:
    if isinstance(v, int):
        return v
    if isinstance(v, str):
        try:
            return int(v, 16) if v.lower().startswith("0x") else int(v)
        except ValueError:
            pass
    raise DecodeError(f"bad {name}: {v!r}")

def build_topics_param(topic0s: Sequence[Topic0]) -> list[list[str]]:
    t0s = [str(t).strip().lower() for t in topic0s]
    if not all(_is_hash(x) for x in t0s):
        raise ValueError(f"Invalid topic0(s): {t0s}")
    return [t0s]

def get_logs_params(address: Address, topic0s: Sequence[Topic0], from_block: int, to_block: int) -> list[dict[str, Any]]:
    return [{
        "address": str(address).lower(),
        "fromBlock": _to_hex_block(from_block),
        "toBlock": _to_hex_block(to_block),
        "topics": build_topics_param(topic0s),
    }]

def rpc_request(method: str, params: list[Any], req_id: int = 1) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "method": method, "params": params}

def rpc_result(data: Mapping[str, Any], method: str) -> Any:
    if "error" in data:
        err = data["error"]
        if isinstance(err, dict):
            raise RuntimeError(f"{method} RPC error code={err.get('code')} message={err.get('message')}")
        raise RuntimeError(f"{method} RPC error: {err}")
    return data.get("result")

def raw_log_from_json(rl: Mapping[str, Any]) -> RawLog:
    """Validate one JSON-RPC log object (eth_getLogs item or eth_subscription result)."""
    if not isinstance(rl, Mapping):
        raise DecodeError(f"log must be an object, got {type(rl).__name__}")
    if rl.get("removed"):
        raise DecodeError("log was removed by a reorg")
    tx = rl.get("transactionHash")
    addr = rl.get("address")
    if not _is_hash(tx):
        raise DecodeError(f"bad transactionHash: {tx!r}")
    if not _is_address(addr):
        raise DecodeError(f"bad address: {addr!r}")
    topics = rl.get("topics") or []
    if not all(_is_hash(t) for t in topics):
        raise DecodeError(f"bad topics: {topics!r}")
    data_hex = rl.get("data") or "0x"
    try:
        data = bytes.fromhex(data_hex[2:] if data_hex[:2].lower() == "0x" else data_hex)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"bad data: {e}") from e
    return RawLog(
        block_number=_hex_int(rl.get("blockNumber"), "blockNumber"),
        transaction_hash=TxHash(tx.lower()),
        log_index=_hex_int(rl.get("logIndex"), "logIndex"),
        address=Address(addr.lower()),
        topics=tuple(t.lower() for t in topics),
        data=data,
    )
