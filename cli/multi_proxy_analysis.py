import asyncio
import os
import sys
from functools import partial
from typing import Optional

import click

from config.settings import settings
from proxyscan.exporters.checkpoint_writer import CheckpointWriter
from proxyscan.jobs.resolve_candidates_job import ResolveCandidatesJob
from proxyscan.rpc_client import RpcClient
from storage.sourcify.corpus_client import SourcifyCorpusClient
from utils.file_utils import read_json_file
from utils.logger_utils import configure_logging, get_logger
from utils.signal_utils import configure_signals

logger = get_logger("Multi Proxy Analysis")

EXIT_INTERRUPTED = 130
CANDIDATES_FILE = "multi-proxy-contracts.json"


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "-i",
    "--candidates-file",
    default=os.path.join(settings.pipeline.proxy_result_folder, CANDIDATES_FILE),
    show_default=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Candidate list written by proxy_detection: chain id -> addresses.",
)
@click.option(
    "-r",
    "--rpc-config-file",
    default=settings.rpc.config_file,
    show_default=True,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON object mapping chain id to RPC URL.",
)
@click.option(
    "-o",
    "--output-dir",
    default=settings.pipeline.multi_proxy_result_folder,
    show_default=True,
    type=str,
    help="Folder receiving result.json, multi-implementation-addresses.json and diamond-proxies.json.",
)
@click.option("--rpc-timeout", default=settings.rpc.timeout, show_default=True, type=int, help="Timeout of a single RPC call in seconds.")
@click.option("--rpc-max-retries", default=settings.rpc.max_retries, show_default=True, type=int, help="Attempts per RPC call before the match is left unresolved.")
@click.option(
    "--rpc-min-interval",
    default=settings.rpc.min_interval,
    show_default=True,
    type=float,
    help="Minimum delay in seconds between two requests to the same RPC endpoint.",
)
@click.option("--log-level", default=settings.app.log_level, show_default=True, type=str, help="Logging level, e.g. DEBUG or INFO.")
@click.option("--log-file", default=settings.app.log_file, show_default=True, type=str, help="Path to the log file.")
def multi_proxy_analysis(
    candidates_file: str,
    rpc_config_file: str,
    output_dir: str,
    rpc_timeout: int,
    rpc_max_retries: int,
    rpc_min_interval: float,
    log_level: str,
    log_file: Optional[str] = None,
):
    """Resolves the implementations of contracts matching several proxy patterns"""
    configure_logging(log_file, log_level)
    stop_event = configure_signals()

    candidates = read_json_file(candidates_file)
    rpc_config = read_json_file(rpc_config_file)
    if not isinstance(candidates, dict) or not isinstance(rpc_config, dict):
        raise click.BadParameter("Candidate list and RPC config must both be JSON objects keyed by chain id.")

    corpus_client = SourcifyCorpusClient(
        host=settings.corpus.host,
        port=settings.corpus.port,
        user=settings.corpus.user,
        password=settings.corpus.password,
        database=settings.corpus.database,
    )
    job = ResolveCandidatesJob(
        candidates=candidates,
        rpc_config=rpc_config,
        corpus_client=corpus_client,
        checkpoint_writer=CheckpointWriter(output_dir),
        rpc_client_factory=partial(
            RpcClient,
            max_retries=rpc_max_retries,
            timeout=rpc_timeout,
            rpc_min_interval=rpc_min_interval,
        ),
        stop_event=stop_event,
    )

    try:
        asyncio.run(job.run())
    except Exception:
        logger.exception("Candidate resolution failed:")
        sys.exit(1)
    finally:
        corpus_client.close()

    if job.interrupted:
        sys.exit(EXIT_INTERRUPTED)
    logger.info("Completed")
