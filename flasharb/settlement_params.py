# flasharb/settlement_params.py
"""
Settlement parameter blob shared by the off-chain builder and the
settlement contract: abi.encode(address router, bytes swapCallData,
uint256 minAcceptableOutput). Field order and types are the protocol.
"""

from dataclasses import dataclass

from eth_abi import decode, encode
from web3 import Web3

from flasharb.errors import DecodeFault

PARAMS_ABI_TYPES = ["address", "bytes", "uint256"]


@dataclass(frozen=True)
class SettlementParams:
    router_address: str
    swap_call_data: bytes
    min_acceptable_output: int


def encode_settlement_params(params: SettlementParams) -> bytes:
    return encode(
        PARAMS_ABI_TYPES,
        [
            Web3.to_checksum_address(params.router_address),
            bytes(params.swap_call_data),
            params.min_acceptable_output,
        ],
    )


def decode_settlement_params(blob: bytes) -> SettlementParams:
    """Parse the opaque blob; any malformed encoding is a DecodeFault"""
    raw = bytes(blob or b"")
    try:
        router, call_data, min_output = decode(PARAMS_ABI_TYPES, raw)
    except Exception as e:
        raise DecodeFault(f"Malformed settlement params ({len(raw)} bytes): {e}") from e
    return SettlementParams(
        router_address=Web3.to_checksum_address(router),
        swap_call_data=bytes(call_data),
        min_acceptable_output=int(min_output),
    )
