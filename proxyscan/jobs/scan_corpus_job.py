import threading
import time
from typing import Any, Dict, Optional

from pydantic import ValidationError

from constants.contract_proxy_constants import PROXY_PATTERN_CATALOG_VERSION
from proxyscan.exporters.checkpoint_writer import CheckpointWriter
from proxyscan.jobs.async_base_job import AsyncBaseJob
from proxyscan.mappers.contract_record_mapper import ContractRecordMapper
from proxyscan.models.aggregate import ScanAggregate
from proxyscan.service.contract_analyzer_service import ContractAnalyzerService
from storage.sourcify.corpus_client import SourcifyCorpusClient
from utils.exceptions import BytecodeParseError
from utils.logger_utils import get_logger
from utils.progress_logger_utils import ProgressLogger

logger = get_logger("Scan Corpus Job")


# First pass: detection-only scan of the whole corpus
class ScanCorpusJob(AsyncBaseJob):
    def __init__(
        self,
        corpus_client: SourcifyCorpusClient,
        checkpoint_writer: CheckpointWriter,
        batch_size: int = 1000,
        analyzer: Optional[ContractAnalyzerService] = None,
        stop_event: Optional[threading.Event] = None,
        log_item_step: int = 5000,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be greater than 0")

        super().__init__(stop_event)
        self.corpus_client = corpus_client
        self.checkpoint_writer = checkpoint_writer
        self.batch_size = batch_size
        self.analyzer = analyzer or ContractAnalyzerService()
        self.record_mapper = ContractRecordMapper()

        self.aggregate = ScanAggregate()
        self.page_count = 0
        self.progress_logger = ProgressLogger(name="corpus scan", logger=logger, log_item_step=log_item_step)

    async def _start(self) -> None:
        logger.info(
            f"Starting corpus scan with page size {self.batch_size} "
            f"(pattern catalog {PROXY_PATTERN_CATALOG_VERSION})"
        )
        self.progress_logger.start()

    async def _process(self) -> None:
        offset = 0
        while True:
            rows = self.corpus_client.fetch_contracts_page(offset, self.batch_size)
            if rows:
                self.page_count += 1

            for row in rows:
                if self._should_stop():
                    return
                self._scan_row(row)

            offset += self.batch_size
            self.flush()

            if len(rows) < self.batch_size:
                return

    def _scan_row(self, row: Dict[str, Any]) -> None:
        chain_id, address = row.get("chain_id"), row.get("address")
        try:
            record = self.record_mapper.corpus_row_to_record(row)
            start = time.perf_counter()
            classification = self.analyzer.classify(record)
            duration_ms = (time.perf_counter() - start) * 1000
        except (BytecodeParseError, ValidationError) as e:
            logger.warning(f"Skipping address {address} on chain {chain_id}: {e}")
            self.progress_logger.track(skipped=True)
            return
        except Exception as e:
            logger.error(f"Unexpected error scanning address {address} on chain {chain_id}: {e!r}", exc_info=True)
            self.progress_logger.track(skipped=True)
            return

        self.aggregate.record(classification, duration_ms)
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
            # Processing already failed, its error propagates
            logger.exception("Final flush of the corpus scan failed")
            return

        self._log_summary()
        if self.interrupted:
            logger.warning(f"Corpus scan interrupted after {self.aggregate.analyzed_contracts} contracts")

    def _log_summary(self) -> None:
        stats = self.aggregate.duration_stats()
        logger.info(f"Analyzed contracts: {self.aggregate.analyzed_contracts} in {self.page_count} pages")
        logger.info(f"Average detection duration: {stats['averageDurationMs']} ms")
        logger.info(f"Total proxies: {self.aggregate.proxy_count}")
        logger.info(f"Proxy types by name: {self.aggregate.proxy_types}")
        logger.info(f"Contracts with multiple proxies detected: {self.aggregate.multi_proxy_contracts_count}")
