import pytest
from unittest.mock import AsyncMock, MagicMock

from eth_abi import encode

from constants.contract_proxy_constants import (
    SIG_FACET_ADDRESSES,
    SIG_IMPLEMENTATION,
    SLOT_EIP1967_IMPL,
)
from proxyscan.jobs.resolve_candidates_job import ResolveCandidatesJob
from proxyscan.service.contract_analyzer_service import ContractAnalyzerService
from proxyscan.service.proxy_detector_service import ProxyDetectorService

PROXY_1 = "0x1111111111111111111111111111111111111111"
PROXY_2 = "0x2222222222222222222222222222222222222222"
IMPL_A = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
IMPL_B = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"

SINGLE_PROXY_CODE = "7f" + SLOT_EIP1967_IMPL[2:] + "54" + "5af4"
MULTI_PROXY_CODE = "63" + SIG_IMPLEMENTATION[2:] + SINGLE_PROXY_CODE
DIAMOND_CODE = "63" + SIG_FACET_ADDRESSES[2:] + SINGLE_PROXY_CODE


def word(address: str) -> str:
    return "0x" + address[2:].rjust(64, "0")


def abi_address(address: str) -> str:
    return "0x" + encode(["address"], [address]).hex()


@pytest.fixture
def writer():
    return MagicMock()


@pytest.fixture
def rpc_client():
    client = MagicMock()
    client.get_storage_at = AsyncMock(return_value=word(IMPL_A))
    client.call = AsyncMock(return_value=abi_address(IMPL_B))
    client.close = AsyncMock()
    return client


@pytest.fixture
def rpc_client_factory(rpc_client):
    return MagicMock(return_value=rpc_client)


def make_corpus(codes_by_address):
    corpus = MagicMock()
    corpus.fetch_runtime_code.side_effect = lambda address, chain_id: codes_by_address.get(address, [])
    return corpus


@pytest.mark.asyncio
async def test_multi_implementation_contract_is_registered(writer, rpc_client_factory, rpc_client):
    corpus = make_corpus({PROXY_1: [MULTI_PROXY_CODE]})
    job = ResolveCandidatesJob({"1": [PROXY_1]}, {"1": "http://rpc"}, corpus, writer, rpc_client_factory)

    await job.run()

    aggregate = job.aggregate
    assert aggregate.processed_contracts == 1
    assert aggregate.checked_chains == ["1"]
    assert aggregate.implementation_count == {2: 1}
    assert aggregate.multi_implementation_addresses == {
        "1": {PROXY_1: ["EIP1967Proxy, LegacyUpgradeableProxy", IMPL_A, IMPL_B]}
    }
    rpc_client_factory.assert_called_once_with("http://rpc")
    rpc_client.close.assert_awaited_once()
    assert job.completed


@pytest.mark.asyncio
async def test_same_implementation_is_counted_once(writer, rpc_client_factory, rpc_client):
    rpc_client.call.return_value = abi_address(IMPL_A)
    corpus = make_corpus({PROXY_1: [MULTI_PROXY_CODE]})
    job = ResolveCandidatesJob({"1": [PROXY_1]}, {"1": "http://rpc"}, corpus, writer, rpc_client_factory)

    await job.run()

    assert job.aggregate.implementation_count == {1: 1}
    assert job.aggregate.multi_implementation_addresses == {}


@pytest.mark.asyncio
async def test_chain_without_rpc_url_is_skipped(writer, rpc_client_factory):
    corpus = make_corpus({PROXY_1: [MULTI_PROXY_CODE], PROXY_2: [MULTI_PROXY_CODE]})
    job = ResolveCandidatesJob(
        {"10": [PROXY_2], "1": [PROXY_1]}, {"1": "http://rpc"}, corpus, writer, rpc_client_factory
    )

    await job.run()

    assert job.aggregate.checked_chains == ["1"]
    assert job.aggregate.processed_contracts == 1
    corpus.fetch_runtime_code.assert_called_once_with(PROXY_1, 1)


@pytest.mark.asyncio
async def test_ambiguous_and_missing_rows_are_skipped(writer, rpc_client_factory):
    corpus = make_corpus({PROXY_1: [MULTI_PROXY_CODE, MULTI_PROXY_CODE]})
    job = ResolveCandidatesJob({"1": [PROXY_1, PROXY_2]}, {"1": "http://rpc"}, corpus, writer, rpc_client_factory)

    await job.run()

    assert job.aggregate.processed_contracts == 0
    assert job.aggregate.multi_proxy_contract_types == {}
    assert job.completed


@pytest.mark.asyncio
async def test_stale_candidate_and_bad_bytecode_are_skipped(writer, rpc_client_factory, rpc_client):
    corpus = make_corpus({PROXY_1: [SINGLE_PROXY_CODE], PROXY_2: ["0xzz"]})
    job = ResolveCandidatesJob({"1": [PROXY_1, PROXY_2]}, {"1": "http://rpc"}, corpus, writer, rpc_client_factory)

    await job.run()

    assert job.aggregate.processed_contracts == 0
    rpc_client.get_storage_at.assert_not_called()
    rpc_client.call.assert_not_called()


@pytest.mark.asyncio
async def test_diamond_goes_to_diamond_registry(writer, rpc_client_factory, rpc_client):
    rpc_client.call.return_value = "0x" + encode(["address[]"], [[IMPL_A, IMPL_B]]).hex()
    corpus = make_corpus({PROXY_1: [DIAMOND_CODE]})
    job = ResolveCandidatesJob({"1": [PROXY_1]}, {"1": "http://rpc"}, corpus, writer, rpc_client_factory)

    await job.run()

    aggregate = job.aggregate
    assert aggregate.diamond_proxies == {"1": [PROXY_1]}
    assert aggregate.diamond_facets == {"1": {PROXY_1: [IMPL_A, IMPL_B]}}
    assert aggregate.implementation_count == {}
    assert aggregate.multi_implementation_addresses == {}
    rpc_client.get_storage_at.assert_not_called()


@pytest.mark.asyncio
async def test_flush_after_each_chain_and_at_end(writer, rpc_client_factory):
    corpus = make_corpus({PROXY_1: [MULTI_PROXY_CODE], PROXY_2: [MULTI_PROXY_CODE]})
    job = ResolveCandidatesJob(
        {"1": [PROXY_1], "137": [PROXY_2]},
        {"1": "http://rpc-1", "137": "http://rpc-137"},
        corpus,
        writer,
        rpc_client_factory,
    )

    await job.run()

    assert writer.flush.call_count == 3
    final = writer.flush.call_args.args[0]
    assert final["result.json"]["checkedChains"] == ["1", "137"]
    assert final["result.json"]["processedContracts"] == 2


@pytest.mark.asyncio
async def test_interrupt_stops_before_next_contract(writer, rpc_client_factory, rpc_client):
    corpus = make_corpus({PROXY_1: [MULTI_PROXY_CODE], PROXY_2: [MULTI_PROXY_CODE]})
    stop_event = MagicMock()
    # chain check, first contract, second contract
    stop_event.is_set.side_effect = [False, False, True]
    job = ResolveCandidatesJob(
        {"1": [PROXY_1, PROXY_2]}, {"1": "http://rpc"}, corpus, writer, rpc_client_factory, stop_event=stop_event
    )

    await job.run()

    assert job.interrupted
    assert job.aggregate.processed_contracts == 1
    writer.flush.assert_called_once()
    rpc_client.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_malformed_accessor_result_leaves_other_matches_counted(writer, rpc_client_factory, rpc_client):
    rpc_client.call.return_value = ["0x"]
    corpus = make_corpus({PROXY_1: [MULTI_PROXY_CODE]})
    job = ResolveCandidatesJob({"1": [PROXY_1]}, {"1": "http://rpc"}, corpus, writer, rpc_client_factory)

    await job.run()

    aggregate = job.aggregate
    assert aggregate.processed_contracts == 1
    assert aggregate.implementation_count == {1: 1}
    assert aggregate.multi_implementation_addresses == {}
    assert job.completed


@pytest.mark.asyncio
async def test_non_numeric_chain_id_is_skipped(writer, rpc_client_factory):
    corpus = make_corpus({PROXY_1: [MULTI_PROXY_CODE], PROXY_2: [MULTI_PROXY_CODE]})
    job = ResolveCandidatesJob(
        {"mainnet": [PROXY_2], "1": [PROXY_1]},
        {"mainnet": "http://rpc-mainnet", "1": "http://rpc"},
        corpus,
        writer,
        rpc_client_factory,
    )

    await job.run()

    assert job.aggregate.checked_chains == ["1"]
    assert job.aggregate.processed_contracts == 1
    rpc_client_factory.assert_called_once_with("http://rpc")
    corpus.fetch_runtime_code.assert_called_once_with(PROXY_1, 1)
    assert job.completed


@pytest.mark.asyncio
async def test_unexpected_detector_error_skips_contract(writer, rpc_client_factory):
    detector = MagicMock()
    detector.detect.side_effect = [RuntimeError("boom"), ProxyDetectorService().detect(MULTI_PROXY_CODE)]
    corpus = make_corpus({PROXY_1: [MULTI_PROXY_CODE], PROXY_2: [MULTI_PROXY_CODE]})
    job = ResolveCandidatesJob(
        {"1": [PROXY_2, PROXY_1]},
        {"1": "http://rpc"},
        corpus,
        writer,
        rpc_client_factory,
        analyzer=ContractAnalyzerService(detector=detector),
    )

    await job.run()

    assert job.aggregate.processed_contracts == 1
    assert job.aggregate.multi_implementation_addresses["1"].keys() == {PROXY_1}
    assert job.completed


@pytest.mark.asyncio
async def test_corpus_failure_flushes_and_propagates(writer, rpc_client_factory, rpc_client):
    corpus = MagicMock()
    corpus.fetch_runtime_code.side_effect = ConnectionError("lost")
    job = ResolveCandidatesJob({"1": [PROXY_1]}, {"1": "http://rpc"}, corpus, writer, rpc_client_factory)

    with pytest.raises(ConnectionError):
        await job.run()

    # only the best-effort final flush, no chain finished
    assert writer.flush.call_count == 1
    rpc_client.close.assert_awaited_once()
    assert not job.completed
