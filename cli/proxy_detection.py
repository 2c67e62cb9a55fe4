import asyncio
import sys
from typing import Optional

import click

from config.settings import settings
from proxyscan.exporters.checkpoint_writer import CheckpointWriter
from proxyscan.jobs.scan_corpus_job import ScanCorpusJob
from storage.sourcify.corpus_client import SourcifyCorpusClient
from utils.logger_utils import configure_logging, get_logger
from utils.signal_utils import configure_signals

logger = get_logger("Proxy Detection")

EXIT_INTERRUPTED = 130


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option("-b", "--batch-size", default=settings.pipeline.batch_size, show_default=True, type=int, help="Number of corpus rows fetched per page.")
@click.option(
    "-o",
    "--output-dir",
    default=settings.pipeline.proxy_result_folder,
    show_default=True,
    type=str,
    help="Folder receiving results.json, multi-proxy-contracts.json and durations-stats.json.",
)
@click.option("--log-level", default=settings.app.log_level, show_default=True, type=str, help="Logging level, e.g. DEBUG or INFO.")
@click.option("--log-file", default=settings.app.log_file, show_default=True, type=str, help="Path to the log file.")
def proxy_detection(batch_size: int, output_dir: str, log_level: str, log_file: Optional[str] = None):
    """Scans the whole contract corpus for proxy patterns (detection only, no chain access)"""
    configure_logging(log_file, log_level)
    stop_event = configure_signals()

    corpus_client = SourcifyCorpusClient(
        host=settings.corpus.host,
        port=settings.corpus.port,
        user=settings.corpus.user,
        password=settings.corpus.password,
        database=settings.corpus.database,
    )
    job = ScanCorpusJob(
        corpus_client=corpus_client,
        checkpoint_writer=CheckpointWriter(output_dir),
        batch_size=batch_size,
        stop_event=stop_event,
    )

    try:
        asyncio.run(job.run())
    except Exception:
        logger.exception("Corpus scan failed:")
        sys.exit(1)
    finally:
        corpus_client.close()

    if job.interrupted:
        sys.exit(EXIT_INTERRUPTED)
    logger.info("Completed")
