import asyncio
import random
import time
from typing import Any, Dict, List, Optional, Union

import aiohttp

from utils.exceptions import RetriableValueError, RpcError
from utils.logger_utils import get_logger
from utils.rpc_utils import build_rpc_payload, rpc_response_to_result

logger = get_logger("Rpc Client")


class RpcClient(object):
    """
    JSON-RPC client for read-only chain queries (eth_getStorageAt, eth_call).
    Uses a persistent ClientSession for connection pooling, allows at most one
    in-flight request per client, and enforces a minimum interval between
    requests with adaptive backoff on 429s.

    Failures never return a sentinel: a JSON-RPC error (including reverts) is
    raised immediately as RpcError, while network errors, timeouts and
    retriable server errors are retried and raised as RpcError once retries
    are exhausted.
    """

    def __init__(
        self,
        rpc_url: Union[str, List[str]],
        max_retries: int = 3,
        timeout: int = 30,
        rpc_min_interval: float = 0.1,
    ):
        if isinstance(rpc_url, str):
            self.rpc_urls = [rpc_url]
        else:
            self.rpc_urls = rpc_url

        if not self.rpc_urls:
            raise ValueError("At least one RPC URL must be provided.")

        self.id_counter = 0
        self.max_retries = max_retries
        # Total timeout for a single request (connect + read)
        self.timeout = aiohttp.ClientTimeout(total=timeout)

        self._session: Optional[aiohttp.ClientSession] = None
        # One request in flight per endpoint; rate limits of public endpoints are unknown
        self._lock = asyncio.Lock()

        self._last_request_time = 0.0
        self._min_interval = rpc_min_interval

    async def _get_session(self) -> aiohttp.ClientSession:
        """Lazy loads or returns the existing session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=1, force_close=False)
            self._session = aiohttp.ClientSession(connector=connector, timeout=self.timeout)
        return self._session

    async def close(self):
        """Closes the underlying session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _generate_id(self) -> int:
        self.id_counter += 1
        return self.id_counter

    async def _enforce_rate_limit(self):
        """Ensures a minimum interval between requests to avoid bursting."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._min_interval:
            await asyncio.sleep(self._min_interval - elapsed)
        self._last_request_time = time.time()

    async def _handle_429_backoff(self, url: str, attempt: int, method_name: str):
        """
        Adaptive handling for 429 Too Many Requests: permanently slows this
        client down (up to 2s per request) and sleeps with exponential backoff + jitter.
        """
        previous_interval = self._min_interval
        self._min_interval = min(max(self._min_interval, 0.05) * 1.5, 2.0)

        if self._min_interval > previous_interval:
            logger.warning(
                f"RPC 429 Rate Limit at {url}. Increasing per-request delay from "
                f"{previous_interval:.2f}s to {self._min_interval:.2f}s"
            )

        backoff_time = (2 ** (attempt - 1)) + random.uniform(0, 1)
        logger.warning(f"RPC 429 at {url} for {method_name}. Backing off for {backoff_time:.2f}s...")
        await asyncio.sleep(backoff_time)

    async def get_storage_at(self, address: str, position: str, block: str = "latest") -> str:
        return await self._make_request("eth_getStorageAt", [address, position, block])

    async def call(self, to: str, data: str, block: str = "latest") -> str:
        return await self._make_request("eth_call", [{"to": to, "data": data}, block])

    async def _make_request(self, method_name: str, params: List[Any]) -> Any:
        async with self._lock:
            return await self._make_request_unlocked(method_name, params)

    async def _make_request_unlocked(self, method_name: str, params: List[Any]) -> Any:
        session = await self._get_session()
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            for url in self.rpc_urls:
                payload: Dict[str, Any] = build_rpc_payload(method_name, params, self._generate_id())
                try:
                    await self._enforce_rate_limit()
                    async with session.post(url, json=payload) as response:
                        if response.status == 200:
                            data = await response.json(content_type=None)
                            if not isinstance(data, dict):
                                raise RpcError(f"Malformed JSON-RPC response for {method_name} at {url}: {data!r}")
                            return rpc_response_to_result(data)
                        elif response.status == 429:
                            last_error = RpcError(f"HTTP 429 from {url}")
                            await self._handle_429_backoff(url, attempt, method_name)
                        else:
                            last_error = RpcError(f"HTTP {response.status} from {url}")
                            logger.warning(f"RPC HTTP Error {response.status} in {method_name} at {url}.")
                except RetriableValueError as e:
                    last_error = e
                    logger.debug(f"Retriable RPC error in {method_name} at {url}: {e}")
                except ValueError as e:
                    # JSON-RPC error object, e.g. execution reverted
                    raise RpcError(f"{method_name} failed at {url}: {e}") from e
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    last_error = e
                    logger.warning(f"Network error in {method_name} at {url}: {e!r}")

            if attempt < self.max_retries:
                wait_time = (2 ** (attempt - 1)) + random.uniform(0, 1)
                await asyncio.sleep(wait_time)

        raise RpcError(f"{method_name} failed after {self.max_retries} attempts: {last_error!r}")
