import pytest
from unittest.mock import AsyncMock, MagicMock

from constants.contract_proxy_constants import (
    SIG_FACET_ADDRESSES,
    SIG_IMPLEMENTATION,
    SLOT_EIP1967_IMPL,
)
from proxyscan.models.contract import ClassificationKind, ContractRecord, ResolvedImplementation
from proxyscan.models.proxy_pattern import ProxyPattern, ResolutionMethod
from proxyscan.service.contract_analyzer_service import ContractAnalyzerService

PROXY = "0x1111111111111111111111111111111111111111"
IMPL_A = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
IMPL_B = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"

# EIP-1967 slot + implementation() accessor, delegating
MULTI_PROXY_CODE = "63" + SIG_IMPLEMENTATION[2:] + "7f" + SLOT_EIP1967_IMPL[2:] + "54" + "5af4"
DIAMOND_CODE = "63" + SIG_FACET_ADDRESSES[2:] + "7f" + SLOT_EIP1967_IMPL[2:] + "54" + "5af4"


def resolved(pattern, *addresses, method=ResolutionMethod.STORAGE_SLOT):
    return ResolvedImplementation(pattern=pattern, method=method, addresses=tuple(addresses))


@pytest.fixture
def analyzer():
    return ContractAnalyzerService()


@pytest.fixture
def resolver():
    mock = MagicMock()
    mock.resolve = AsyncMock()
    return mock


def test_classify_non_proxy(analyzer):
    record = ContractRecord(chain_id=1, address=PROXY, bytecode="0x6080604052")

    classification = analyzer.classify(record)

    assert classification.kind == ClassificationKind.NON_PROXY
    assert classification.patterns == []
    assert classification.label == ""


def test_classify_multi_proxy_label(analyzer):
    record = ContractRecord(chain_id=1, address=PROXY, bytecode=MULTI_PROXY_CODE)

    classification = analyzer.classify(record)

    assert classification.kind == ClassificationKind.MULTI_PROXY
    assert classification.label == "EIP1967Proxy, LegacyUpgradeableProxy"


def test_record_address_is_normalized():
    record = ContractRecord(chain_id=1, address="0xAbCdEf0000000000000000000000000000000001")
    assert record.address == "0xabcdef0000000000000000000000000000000001"


@pytest.mark.asyncio
async def test_non_proxy_makes_no_resolver_calls(analyzer, resolver):
    record = ContractRecord(chain_id=1, address=PROXY, bytecode="0x6080604052")

    classification = await analyzer.analyze(record, resolver)

    assert classification.kind == ClassificationKind.NON_PROXY
    resolver.resolve.assert_not_called()


@pytest.mark.asyncio
async def test_same_implementation_counts_once(analyzer, resolver):
    resolver.resolve.side_effect = [
        resolved(ProxyPattern.EIP1967, IMPL_A),
        resolved(ProxyPattern.LEGACY_UPGRADEABLE, IMPL_A, method=ResolutionMethod.ACCESSOR_CALL),
    ]
    record = ContractRecord(chain_id=1, address=PROXY, bytecode=MULTI_PROXY_CODE)

    classification = await analyzer.analyze(record, resolver)

    assert classification.implementation_count == 1
    assert classification.implementations == [IMPL_A]


@pytest.mark.asyncio
async def test_distinct_implementations_are_kept_in_order(analyzer, resolver):
    resolver.resolve.side_effect = [
        resolved(ProxyPattern.EIP1967, IMPL_A),
        resolved(ProxyPattern.LEGACY_UPGRADEABLE, IMPL_B, method=ResolutionMethod.ACCESSOR_CALL),
    ]
    record = ContractRecord(chain_id=1, address=PROXY, bytecode=MULTI_PROXY_CODE)

    classification = await analyzer.analyze(record, resolver)

    assert classification.implementation_count == 2
    assert classification.implementations == [IMPL_A, IMPL_B]


@pytest.mark.asyncio
async def test_unresolved_match_does_not_block_others(analyzer, resolver):
    resolver.resolve.side_effect = [None, resolved(ProxyPattern.LEGACY_UPGRADEABLE, IMPL_B)]
    record = ContractRecord(chain_id=1, address=PROXY, bytecode=MULTI_PROXY_CODE)

    classification = await analyzer.analyze(record, resolver)

    assert classification.implementations == [IMPL_B]
    assert classification.unresolved == [ProxyPattern.EIP1967]


@pytest.mark.asyncio
async def test_diamond_resolves_facets_only(analyzer, resolver):
    resolver.resolve.return_value = resolved(
        ProxyPattern.DIAMOND, IMPL_A, IMPL_B, method=ResolutionMethod.FACET_ENUMERATION
    )
    record = ContractRecord(chain_id=1, address=PROXY, bytecode=DIAMOND_CODE)

    classification = await analyzer.analyze(record, resolver)

    assert classification.kind == ClassificationKind.DIAMOND
    assert classification.is_diamond
    assert classification.implementations == []
    assert classification.facets == [IMPL_A, IMPL_B]
    resolver.resolve.assert_awaited_once()
    assert resolver.resolve.await_args.args[0].pattern == ProxyPattern.DIAMOND
