from eth_utils import function_signature_to_4byte_selector, keccak

from constants import contract_proxy_constants as constants
from proxyscan.models.proxy_pattern import (
    PATTERN_DEFINITIONS,
    PATTERN_ORDER,
    PROXY_PATTERN_CATALOG,
    ProxyPattern,
    ResolutionMethod,
)


def _slot(label: str, offset: int = 0) -> str:
    value = int.from_bytes(keccak(text=label), byteorder="big") - offset
    return "0x%064x" % value


def _selector(signature: str) -> str:
    return "0x" + function_signature_to_4byte_selector(signature).hex()


def test_storage_slots_match_their_derivation():
    assert constants.SLOT_EIP1967_IMPL == _slot("eip1967.proxy.implementation", 1)
    assert constants.SLOT_EIP1967_BEACON == _slot("eip1967.proxy.beacon", 1)
    assert constants.SLOT_ZEPPELINOS_IMPL == _slot("org.zeppelinos.proxy.implementation")
    assert constants.SLOT_ERC1822_PROXIABLE == _slot("PROXIABLE")
    assert constants.SLOT_DIAMOND_STANDARD_STORAGE == _slot("diamond.standard.diamond.storage")
    assert constants.SLOT_DIAMOND_STORAGE == _slot("diamond.standard.diamond.storage", 1)


def test_selectors_match_their_signatures():
    assert constants.SIG_IMPLEMENTATION == _selector("implementation()")
    assert constants.SIG_BEACON == _selector("beacon()")
    assert constants.SIG_FACET_ADDRESS == _selector("facetAddress(bytes4)")
    assert constants.SIG_FACET_ADDRESSES == _selector("facetAddresses()")
    assert constants.SIG_FACETS == _selector("facets()")
    assert constants.SIG_GNOSIS_MASTER_COPY_WORD.startswith(_selector("masterCopy()"))
    assert len(constants.SIG_GNOSIS_MASTER_COPY_WORD) == 66


def test_catalog_covers_every_pattern_once():
    patterns = [definition.pattern for definition in PROXY_PATTERN_CATALOG]
    assert sorted(patterns) == sorted(ProxyPattern)
    assert set(PATTERN_DEFINITIONS) == set(ProxyPattern)


def test_catalog_order_follows_priority():
    priorities = [definition.priority for definition in PROXY_PATTERN_CATALOG]
    assert priorities == sorted(priorities)
    assert PATTERN_ORDER[ProxyPattern.FIXED] == 0
    assert PATTERN_ORDER[ProxyPattern.DIAMOND] == len(PROXY_PATTERN_CATALOG) - 1


def test_every_pattern_can_be_resolved():
    for definition in PROXY_PATTERN_CATALOG:
        if definition.resolution == ResolutionMethod.STORAGE_SLOT:
            assert definition.storage_slot is not None
        elif definition.resolution in (ResolutionMethod.ACCESSOR_CALL, ResolutionMethod.FACET_ENUMERATION):
            assert definition.accessor is not None
        elif definition.resolution == ResolutionMethod.BEACON:
            assert definition.storage_slot is not None and definition.accessor is not None
        else:
            assert definition.templates


def test_clone_templates_have_expected_sizes():
    sizes = {template.prefix: template.size for template in PATTERN_DEFINITIONS[ProxyPattern.FIXED].templates}
    assert sizes[constants.EIP1167_PREFIX] == 45
    assert sizes[constants.ERC7511_PREFIX] == 44
