from typing import Any, Optional

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from constants.contract_proxy_constants import SLOT_SELF_ADDRESS
from proxyscan.models.contract import ProxyMatch, ResolvedImplementation
from proxyscan.models.proxy_pattern import PATTERN_DEFINITIONS, ResolutionMethod
from proxyscan.rpc_client import RpcClient
from utils.exceptions import ResolutionError, RpcError
from utils.formatter_utils import (
    ZERO_ADDRESS,
    address_to_slot,
    bytes32_to_address,
    clean_bytecode,
    to_normalized_address,
)
from utils.logger_utils import get_logger

logger = get_logger("Implementation Resolver Service")


def _require_hex(value: Any, source: str) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ResolutionError(f"{source} returned a non-hex result: {value!r}")
    return value


class ImplementationResolverService:
    """
    Resolves the implementation address behind a detected proxy pattern by
    querying the chain: storage slot reads, accessor calls, beacon hops and
    diamond facet enumeration.

    A failed resolution never raises: RPC failures, reverts and undecodable
    return data are logged and reported as None.
    """

    def __init__(self, rpc_client: RpcClient, chain_id: Optional[int] = None):
        self.rpc_client = rpc_client
        self.chain_id = chain_id

    async def resolve(self, match: ProxyMatch, address: str) -> Optional[ResolvedImplementation]:
        definition = PATTERN_DEFINITIONS[match.pattern]
        try:
            if definition.resolution == ResolutionMethod.BYTECODE:
                addresses = self._from_bytecode(match)
            elif definition.resolution == ResolutionMethod.STORAGE_SLOT:
                addresses = await self._from_storage_slot(match, address)
            elif definition.resolution == ResolutionMethod.ACCESSOR_CALL:
                addresses = await self._from_accessor(address, match.selector or definition.accessor)
            elif definition.resolution == ResolutionMethod.BEACON:
                addresses = await self._from_beacon(match, address, definition.accessor)
            elif definition.resolution == ResolutionMethod.FACET_ENUMERATION:
                addresses = await self._from_facets(address, match.selector or definition.accessor)
            else:
                raise ResolutionError(f"Unsupported resolution method {definition.resolution}")
        except (RpcError, ResolutionError) as e:
            logger.warning(f"Could not resolve {match.name} for {address} on chain {self.chain_id}: {e}")
            return None

        if not addresses:
            logger.debug(f"{match.name} for {address} on chain {self.chain_id} resolved to the zero address")
            return None

        return ResolvedImplementation(pattern=match.pattern, method=definition.resolution, addresses=addresses)

    @staticmethod
    def _from_bytecode(match: ProxyMatch) -> tuple:
        address = to_normalized_address(match.implementation)
        if address is None or address == ZERO_ADDRESS:
            return ()
        return (address,)

    async def _from_storage_slot(self, match: ProxyMatch, address: str) -> tuple:
        if match.slot is None:
            raise ResolutionError(f"{match.name} match carries no storage slot")

        slot = address_to_slot(address) if match.slot == SLOT_SELF_ADDRESS else match.slot
        value = await self.rpc_client.get_storage_at(address, slot)
        implementation = bytes32_to_address(_require_hex(value, "eth_getStorageAt"))
        return (implementation,) if implementation else ()

    async def _from_accessor(self, address: str, selector: Optional[str]) -> tuple:
        if selector is None:
            raise ResolutionError(f"No accessor selector to call on {address}")

        result = await self.rpc_client.call(address, selector)
        implementation = self._decode_address(result)
        return (implementation,) if implementation else ()

    async def _from_beacon(self, match: ProxyMatch, address: str, accessor: Optional[str]) -> tuple:
        # Hop 1: beacon address from the beacon slot or the proxy's beacon() accessor
        if match.slot is not None:
            value = await self.rpc_client.get_storage_at(address, match.slot)
            beacon = bytes32_to_address(_require_hex(value, "eth_getStorageAt"))
        else:
            beacon = self._decode_address(await self.rpc_client.call(address, match.selector))

        if beacon is None:
            return ()

        # Hop 2: implementation() on the beacon
        return await self._from_accessor(beacon, accessor)

    async def _from_facets(self, address: str, selector: Optional[str]) -> tuple:
        if selector is None:
            raise ResolutionError(f"No facet enumeration selector to call on {address}")

        result = _require_hex(await self.rpc_client.call(address, selector), "facetAddresses()")
        try:
            (facets,) = decode(["address[]"], bytes.fromhex(clean_bytecode(result)))
        except (DecodingError, ValueError) as e:
            raise ResolutionError(f"facetAddresses() returned undecodable data: {e}") from e

        distinct = []
        for facet in facets:
            normalized = to_normalized_address(facet)
            if normalized and normalized != ZERO_ADDRESS and normalized not in distinct:
                distinct.append(normalized)
        return tuple(distinct)

    @staticmethod
    def _decode_address(result: Optional[str]) -> Optional[str]:
        result = _require_hex(result, "Accessor")
        if not result or result == "0x":
            raise ResolutionError("Accessor returned no data")
        try:
            (address,) = decode(["address"], bytes.fromhex(clean_bytecode(result)))
        except (DecodingError, ValueError) as e:
            raise ResolutionError(f"Accessor returned undecodable data: {e}") from e

        normalized = to_normalized_address(address)
        return None if normalized == ZERO_ADDRESS else normalized
