import threading
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from proxyscan.exporters.checkpoint_writer import CheckpointWriter
from proxyscan.jobs.async_base_job import AsyncBaseJob
from proxyscan.mappers.contract_record_mapper import ContractRecordMapper
from proxyscan.models.aggregate import RunAggregate
from proxyscan.rpc_client import RpcClient
from proxyscan.service.contract_analyzer_service import ContractAnalyzerService
from proxyscan.service.implementation_resolver_service import ImplementationResolverService
from storage.sourcify.corpus_client import SourcifyCorpusClient
from utils.exceptions import BytecodeParseError, CorpusInconsistencyError
from utils.logger_utils import get_logger
from utils.progress_logger_utils import ProgressLogger

logger = get_logger("Resolve Candidates Job")


# Second pass: resolve the implementations of contracts matching several proxy patterns
class ResolveCandidatesJob(AsyncBaseJob):
    def __init__(
        self,
        candidates: Dict[str, List[str]],
        rpc_config: Dict[str, str],
        corpus_client: SourcifyCorpusClient,
        checkpoint_writer: CheckpointWriter,
        rpc_client_factory: Callable[[str], RpcClient] = RpcClient,
        analyzer: Optional[ContractAnalyzerService] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        super().__init__(stop_event)
        self.candidates = candidates
        self.rpc_config = {str(chain_id): url for chain_id, url in rpc_config.items()}
        self.corpus_client = corpus_client
        self.checkpoint_writer = checkpoint_writer
        self.rpc_client_factory = rpc_client_factory
        self.analyzer = analyzer or ContractAnalyzerService()
        self.record_mapper = ContractRecordMapper()

        self.aggregate = RunAggregate()
        self.progress_logger = ProgressLogger(name="candidate resolution", logger=logger, log_item_step=100)

    async def _start(self) -> None:
        total = sum(len(addresses) for addresses in self.candidates.values())
        logger.info(f"Resolving {total} candidate contracts on {len(self.candidates)} chains")
        self.progress_logger.start(total)

    async def _process(self) -> None:
        for chain_id, addresses in self.candidates.items():
            if self._should_stop():
                return

            chain_id = str(chain_id)
            rpc_url = self.rpc_config.get(chain_id)
            if not rpc_url:
                logger.warning(f"No RPC URL for chain id {chain_id}, skipping {len(addresses)} contracts")
                self.progress_logger.track(len(addresses), skipped=True)
                continue

            try:
                chain_number = int(chain_id)
            except ValueError:
                logger.warning(f"Invalid chain id {chain_id!r}, skipping {len(addresses)} contracts")
                self.progress_logger.track(len(addresses), skipped=True)
                continue

            logger.info(f"Processing chain id {chain_id}")
            self.aggregate.add_checked_chain(chain_id)

            rpc_client = self.rpc_client_factory(rpc_url)
            try:
                resolver = ImplementationResolverService(rpc_client, chain_id=chain_number)
                for address in addresses:
                    if self._should_stop():
                        return
                    await self._resolve_candidate(chain_id, chain_number, address, resolver)
            finally:
                await rpc_client.close()

            self.flush()

    async def _resolve_candidate(
        self, chain_id: str, chain_number: int, address: str, resolver: ImplementationResolverService
    ) -> None:
        # Corpus errors are fatal and propagate
        rows = self.corpus_client.fetch_runtime_code(address, chain_number)

        if not rows:
            logger.warning(f"No contract found for address {address} on chain {chain_id}, skipping")
            self.progress_logger.track(skipped=True)
            return
        if len(rows) > 1:
            logger.warning(f"{CorpusInconsistencyError(chain_id, address, len(rows))}, skipping")
            self.progress_logger.track(skipped=True)
            return

        try:
            record = self.record_mapper.runtime_code_to_record(chain_id, address, rows[0])
            matches = self.analyzer.detect(record)
        except (BytecodeParseError, ValidationError) as e:
            logger.warning(f"Proxy detection failed for address {address} on chain {chain_id}, skipping: {e}")
            self.progress_logger.track(skipped=True)
            return
        except Exception as e:
            logger.error(
                f"Unexpected error detecting proxies of address {address} on chain {chain_id}: {e!r}", exc_info=True
            )
            self.progress_logger.track(skipped=True)
            return

        if len(matches) < 2:
            logger.warning(f"Just {len(matches)} proxies found for address {address} on chain {chain_id}, skipping")
            self.progress_logger.track(skipped=True)
            return

        try:
            classification = await self.analyzer.resolve(record, matches, resolver)
        except Exception as e:
            logger.error(f"Unexpected error resolving address {address} on chain {chain_id}: {e!r}", exc_info=True)
            self.progress_logger.track(skipped=True)
            return

        self.aggregate.record(classification)
        self.progress_logger.track()

    def flush(self) -> None:
        self.checkpoint_writer.flush(self.aggregate.to_artifacts())

    async def _end(self) -> None:
        self.progress_logger.finish()
        try:
            self.flush()
        except Exception:
            if self.completed or self.interrupted:
                raise
            logger.exception("Final flush of the candidate resolution failed")
            return

        self._log_summary()
        if self.interrupted:
            logger.warning(f"Candidate resolution interrupted after {self.aggregate.processed_contracts} contracts")

    def _log_summary(self) -> None:
        logger.info(f"Processed contracts: {self.aggregate.processed_contracts}")
        logger.info(f"Checked chains: {self.aggregate.checked_chains}")
        logger.info(f"Multi proxy contract types: {self.aggregate.multi_proxy_contract_types}")
        logger.info(f"Number of implementation addresses count: {self.aggregate.implementation_count}")
        logger.info(f"Diamond proxies: {sum(len(a) for a in self.aggregate.diamond_proxies.values())}")
