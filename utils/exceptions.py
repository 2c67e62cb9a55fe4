class ProxyScanError(Exception):
    """Base class for errors raised while scanning contracts for proxy patterns."""


class BytecodeParseError(ProxyScanError):
    """Runtime bytecode could not be decoded or disassembled."""


class CorpusInconsistencyError(ProxyScanError):
    """A point lookup in the contract corpus returned more than one row."""

    def __init__(self, chain_id: str, address: str, row_count: int):
        super().__init__(f"Multiple contracts found for address {address} and chain id {chain_id} ({row_count} rows)")
        self.chain_id = chain_id
        self.address = address
        self.row_count = row_count


class RpcError(ProxyScanError):
    """A JSON-RPC request failed: error response, revert, timeout or network failure."""


class ResolutionError(ProxyScanError):
    """On-chain data was returned but could not be interpreted as an implementation address."""


# Exceptions for which the failed operation can be retried
class RetriableValueError(ValueError):
    pass
