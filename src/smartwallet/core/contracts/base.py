"""
Common plumbing for contracts living on the ledger.

A contract subclass lists its externally callable functions in ``ABI``:

    ABI = {
        "mint(address,uint256)": ("mint", None),
        "balanceOf(address)": ("balance_of", "uint256"),
    }

Raw calldata is routed by selector to the named method, arguments are
decoded from the signature and the return value, when an output type is
given, is ABI-encoded as the call's return data.
"""

from __future__ import annotations

import copy
from typing import Any, ClassVar, Dict, Optional, Tuple

from ..abi import arg_types, decode_args, encode_args, selector, split_calldata
from ..vm.context import CallContext
from ..vm.exceptions import RevertError


class Contract:
    """Base class for ledger contracts."""

    ABI: ClassVar[Dict[str, Tuple[str, Optional[str]]]] = {}

    # Python methods the ledger may invoke directly, besides those in ABI
    EXTERNAL: ClassVar[Tuple[str, ...]] = ()

    address: str = ""

    @classmethod
    def external_methods(cls) -> frozenset:
        return frozenset(method for method, _ in cls.ABI.values()) | frozenset(cls.EXTERNAL)

    @classmethod
    def _selector_table(cls) -> Dict[bytes, Tuple[str, str, Optional[str]]]:
        table = cls.__dict__.get("_selectors")
        if table is None:
            table = {
                selector(signature): (signature, method, output)
                for signature, (method, output) in cls.ABI.items()
            }
            cls._selectors = table
        return table

    def handle_call(self, ctx: CallContext, data: bytes) -> bytes:
        """Entry point for raw message calls."""
        if not data:
            self.receive(ctx)
            return b""

        sel, encoded = split_calldata(data)
        entry = self._selector_table().get(sel)
        if entry is None:
            raise RevertError(b"", f"{type(self).__name__}: unknown selector 0x{sel.hex()}")

        signature, method, output = entry
        args = decode_args(arg_types(signature), encoded)
        result = getattr(self, method)(ctx, *args)
        if output is None:
            return b""
        return encode_args([output], [result])

    def receive(self, ctx: CallContext) -> None:
        """Contracts reject plain value transfers unless they override this."""
        raise RevertError(b"", f"{type(self).__name__} does not accept plain transfers")

    def snapshot_state(self) -> Dict[str, Any]:
        return copy.deepcopy(self.__dict__)

    def restore_state(self, state: Dict[str, Any]) -> None:
        self.__dict__.clear()
        self.__dict__.update(copy.deepcopy(state))
