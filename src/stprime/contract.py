"""ST Prime contract encoding.

Calldata comes from a web3 contract binding that has no provider, so
building a transaction or gas-estimate request needs no round-trip. Return
data is decoded with eth_abi.
"""
from typing import Any, Dict, List, Sequence

from eth_abi import decode
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import Web3Exception

from .constants import ST_PRIME_CONTRACT_NAME

__all__ = ["ST_PRIME_ABI", "StPrimeContract"]

# Minimal ABI: only the methods this SDK invokes
ST_PRIME_ABI = [
    {
        "inputs": [],
        "name": "uuid",
        "outputs": [{"name": "", "type": "bytes32"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "initialize",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [{"name": "_beneficiary", "type": "address"}],
        "name": "claim",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

_METHODS: Dict[str, Dict[str, Any]] = {entry["name"]: entry for entry in ST_PRIME_ABI if entry["type"] == "function"}

_binding = Web3().eth.contract(abi=ST_PRIME_ABI)


def _method(method_name: str) -> Dict[str, Any]:
    try:
        return _METHODS[method_name]
    except KeyError:
        raise ValueError(f"{method_name} is not a method of {ST_PRIME_CONTRACT_NAME}") from None


class StPrimeContract:
    """Address plus ABI helpers for the ST Prime contract."""

    name = ST_PRIME_CONTRACT_NAME
    binding: Contract = _binding

    def __init__(self, address: str):
        self.address = address

    @staticmethod
    def output_types(method_name: str) -> List[str]:
        return [arg["type"] for arg in _method(method_name)["outputs"]]

    @classmethod
    def encode_call(cls, method_name: str, args: Sequence[Any] = ()) -> str:
        """Return the 0x-prefixed calldata for ``method_name(*args)``.

        Raises:
            ValueError: If the method is unknown or the arguments do not match
        """
        inputs = _method(method_name)["inputs"]
        args = [
            Web3.to_checksum_address(arg) if param["type"] == "address" and isinstance(arg, str) else arg
            for param, arg in zip(inputs, args)
        ] + list(args[len(inputs):])
        try:
            return cls.binding.encode_abi(method_name, args=args)
        except Web3Exception as e:
            raise ValueError(f"Cannot encode {method_name}: {e}") from e

    @classmethod
    def decode_output(cls, method_name: str, raw: bytes) -> tuple:
        return decode(cls.output_types(method_name), raw)

    def call_params(self, method_name: str, args: Sequence[Any] = ()) -> Dict[str, Any]:
        return {"to": self.address, "data": self.encode_call(method_name, args)}
