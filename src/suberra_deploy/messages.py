"""Builders for the Cosmos/CosmWasm messages the deployer sends."""

import base64
import json
from typing import Any, Dict, List, Optional

Msg = Dict[str, Any]
Coins = List[Dict[str, str]]

STORE_CODE = "/cosmwasm.wasm.v1.MsgStoreCode"
INSTANTIATE_CONTRACT = "/cosmwasm.wasm.v1.MsgInstantiateContract"
EXECUTE_CONTRACT = "/cosmwasm.wasm.v1.MsgExecuteContract"
MIGRATE_CONTRACT = "/cosmwasm.wasm.v1.MsgMigrateContract"
BANK_SEND = "/cosmos.bank.v1beta1.MsgSend"


def to_encoded_binary(obj: Any) -> str:
    """Encode a JSON object as the base64 ``Binary`` contracts expect."""
    return base64.b64encode(json.dumps(obj).encode()).decode()


def coin(denom: str, amount: int) -> Dict[str, str]:
    return {"denom": denom, "amount": str(int(amount))}


def store_code_msg(sender: str, wasm_byte_code: str) -> Msg:
    """Upload message; ``wasm_byte_code`` is the base64 encoded artifact."""
    return {"@type": STORE_CODE, "sender": sender, "wasm_byte_code": wasm_byte_code}


def instantiate_msg(
    sender: str,
    admin: Optional[str],
    code_id: int,
    init_msg: Dict[str, Any],
    label: str = "",
    funds: Optional[Coins] = None,
) -> Msg:
    return {
        "@type": INSTANTIATE_CONTRACT,
        "sender": sender,
        "admin": admin or "",
        "code_id": str(code_id),
        "label": label,
        "msg": init_msg,
        "funds": funds or [],
    }


def execute_msg(
    sender: str, contract: str, msg: Dict[str, Any], funds: Optional[Coins] = None
) -> Msg:
    return {
        "@type": EXECUTE_CONTRACT,
        "sender": sender,
        "contract": contract,
        "msg": msg,
        "funds": funds or [],
    }


def migrate_msg(
    sender: str, contract: str, code_id: int, msg: Optional[Dict[str, Any]] = None
) -> Msg:
    return {
        "@type": MIGRATE_CONTRACT,
        "sender": sender,
        "contract": contract,
        "code_id": str(code_id),
        "msg": msg or {},
    }


def send_msg(from_address: str, to_address: str, amount: Coins) -> Msg:
    return {
        "@type": BANK_SEND,
        "from_address": from_address,
        "to_address": to_address,
        "amount": amount,
    }
