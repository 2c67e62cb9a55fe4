from enum import Enum
from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict

from constants.contract_proxy_constants import (
    EIP1167_PREFIX,
    EIP1167_SUFFIX,
    ERC7511_PREFIX,
    ERC7511_SUFFIX,
    SEQ_SELF_ADDRESS_SLOAD,
    SIG_BEACON,
    SIG_FACET_ADDRESS,
    SIG_FACET_ADDRESSES,
    SIG_FACETS,
    SIG_GNOSIS_MASTER_COPY_WORD,
    SIG_IMPLEMENTATION,
    SLOT_DIAMOND_STANDARD_STORAGE,
    SLOT_DIAMOND_STORAGE,
    SLOT_EIP1967_BEACON,
    SLOT_EIP1967_IMPL,
    SLOT_ERC1822_PROXIABLE,
    SLOT_SELF_ADDRESS,
    SLOT_ZEPPELINOS_IMPL,
    SLOT_ZERO,
)


class ProxyPattern(str, Enum):
    FIXED = "FixedProxy"                                # EIP-1167 / ERC-7511 clones
    EIP1967 = "EIP1967Proxy"                            # EIP-1967 implementation slot
    ZEPPELINOS = "ZeppelinOSProxy"                      # ZeppelinOS implementation slot
    PROXIABLE = "PROXIABLEProxy"                        # ERC-1822 UUPS
    GNOSIS_SAFE = "GnosisSafeProxy"                     # master copy in slot 0
    SEQUENCE_WALLET = "SequenceWalletProxy"             # slot keyed by own address
    LEGACY_UPGRADEABLE = "LegacyUpgradeableProxy"       # implementation() accessor
    EIP1967_BEACON = "EIP1967BeaconProxy"               # EIP-1967 beacon
    DIAMOND = "DiamondProxy"                            # EIP-2535


class PatternFamily(str, Enum):
    MINIMAL_PROXY = "MINIMAL_PROXY"
    FIXED_SLOT = "FIXED_SLOT"
    ACCESSOR = "ACCESSOR"
    BEACON = "BEACON"
    DIAMOND = "DIAMOND"


class ResolutionMethod(str, Enum):
    BYTECODE = "BYTECODE"
    STORAGE_SLOT = "STORAGE_SLOT"
    ACCESSOR_CALL = "ACCESSOR_CALL"
    BEACON = "BEACON"
    FACET_ENUMERATION = "FACET_ENUMERATION"


class BytecodeTemplate(BaseModel):
    """Fixed runtime code with a 20-byte address embedded right after `prefix`."""

    model_config = ConfigDict(frozen=True)

    prefix: str
    suffix: str

    @property
    def address_offset(self) -> int:
        return len(self.prefix) // 2

    @property
    def size(self) -> int:
        return self.address_offset + 20 + len(self.suffix) // 2


class ProxyPatternDefinition(BaseModel):
    """
    One row of the detection catalog: how a pattern is recognized in bytecode
    and how its implementation is resolved.

    A pattern matches when any of its sub-signatures is present: a bytecode
    template, a PUSH32 word, a PUSH4 selector or a consecutive opcode sequence.
    `storage_slot` is the slot read by STORAGE_SLOT resolution; `accessor` the
    selector called by ACCESSOR_CALL, BEACON (on the beacon) and
    FACET_ENUMERATION resolution.
    """

    model_config = ConfigDict(frozen=True)

    pattern: ProxyPattern
    family: PatternFamily
    priority: int
    resolution: ResolutionMethod
    templates: Tuple[BytecodeTemplate, ...] = ()
    push32_words: Tuple[str, ...] = ()
    push4_selectors: Tuple[str, ...] = ()
    opcode_sequences: Tuple[Tuple[str, ...], ...] = ()
    storage_slot: str | None = None
    accessor: str | None = None


PROXY_PATTERN_CATALOG: Tuple[ProxyPatternDefinition, ...] = (
    ProxyPatternDefinition(
        pattern=ProxyPattern.FIXED,
        family=PatternFamily.MINIMAL_PROXY,
        priority=1,
        resolution=ResolutionMethod.BYTECODE,
        templates=(
            BytecodeTemplate(prefix=EIP1167_PREFIX, suffix=EIP1167_SUFFIX),
            BytecodeTemplate(prefix=ERC7511_PREFIX, suffix=ERC7511_SUFFIX),
        ),
    ),
    ProxyPatternDefinition(
        pattern=ProxyPattern.EIP1967,
        family=PatternFamily.FIXED_SLOT,
        priority=2,
        resolution=ResolutionMethod.STORAGE_SLOT,
        push32_words=(SLOT_EIP1967_IMPL,),
        storage_slot=SLOT_EIP1967_IMPL,
    ),
    ProxyPatternDefinition(
        pattern=ProxyPattern.ZEPPELINOS,
        family=PatternFamily.FIXED_SLOT,
        priority=2,
        resolution=ResolutionMethod.STORAGE_SLOT,
        push32_words=(SLOT_ZEPPELINOS_IMPL,),
        storage_slot=SLOT_ZEPPELINOS_IMPL,
    ),
    ProxyPatternDefinition(
        pattern=ProxyPattern.PROXIABLE,
        family=PatternFamily.FIXED_SLOT,
        priority=2,
        resolution=ResolutionMethod.STORAGE_SLOT,
        push32_words=(SLOT_ERC1822_PROXIABLE,),
        storage_slot=SLOT_ERC1822_PROXIABLE,
    ),
    ProxyPatternDefinition(
        pattern=ProxyPattern.GNOSIS_SAFE,
        family=PatternFamily.FIXED_SLOT,
        priority=2,
        resolution=ResolutionMethod.STORAGE_SLOT,
        push32_words=(SIG_GNOSIS_MASTER_COPY_WORD,),
        storage_slot=SLOT_ZERO,
    ),
    ProxyPatternDefinition(
        pattern=ProxyPattern.SEQUENCE_WALLET,
        family=PatternFamily.FIXED_SLOT,
        priority=2,
        resolution=ResolutionMethod.STORAGE_SLOT,
        opcode_sequences=(SEQ_SELF_ADDRESS_SLOAD,),
        storage_slot=SLOT_SELF_ADDRESS,
    ),
    ProxyPatternDefinition(
        pattern=ProxyPattern.LEGACY_UPGRADEABLE,
        family=PatternFamily.ACCESSOR,
        priority=3,
        resolution=ResolutionMethod.ACCESSOR_CALL,
        push4_selectors=(SIG_IMPLEMENTATION,),
        accessor=SIG_IMPLEMENTATION,
    ),
    ProxyPatternDefinition(
        pattern=ProxyPattern.EIP1967_BEACON,
        family=PatternFamily.BEACON,
        priority=4,
        resolution=ResolutionMethod.BEACON,
        push32_words=(SLOT_EIP1967_BEACON,),
        push4_selectors=(SIG_BEACON,),
        storage_slot=SLOT_EIP1967_BEACON,
        accessor=SIG_IMPLEMENTATION,
    ),
    ProxyPatternDefinition(
        pattern=ProxyPattern.DIAMOND,
        family=PatternFamily.DIAMOND,
        priority=5,
        resolution=ResolutionMethod.FACET_ENUMERATION,
        push32_words=(SLOT_DIAMOND_STORAGE, SLOT_DIAMOND_STANDARD_STORAGE),
        push4_selectors=(SIG_FACET_ADDRESS, SIG_FACET_ADDRESSES, SIG_FACETS),
        accessor=SIG_FACET_ADDRESSES,
    ),
)

PATTERN_DEFINITIONS: Dict[ProxyPattern, ProxyPatternDefinition] = {d.pattern: d for d in PROXY_PATTERN_CATALOG}

# Position in the catalog, used to order matches deterministically
PATTERN_ORDER: Dict[ProxyPattern, int] = {
    d.pattern: index for index, d in enumerate(sorted(PROXY_PATTERN_CATALOG, key=lambda d: d.priority))
}