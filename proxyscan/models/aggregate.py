import statistics
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from proxyscan.models.contract import ContractClassification


class ScanAggregate(BaseModel):
    """Counters of the corpus scan. Candidates are contracts with at least two pattern matches."""

    analyzed_contracts: int = 0
    proxy_count: int = 0
    # Pattern name -> number of contracts matching it
    proxy_types: Dict[str, int] = Field(default_factory=dict)
    # Match count (>= 2) -> number of contracts
    multi_proxy_contracts_count: Dict[int, int] = Field(default_factory=dict)
    # Chain id -> candidate addresses, in scan order
    multi_proxy_contracts: Dict[str, List[str]] = Field(default_factory=dict)
    durations_ms: List[float] = Field(default_factory=list)

    def record(self, classification: ContractClassification, duration_ms: float) -> None:
        self.analyzed_contracts += 1
        self.durations_ms.append(duration_ms)

        if classification.match_count > 0:
            self.proxy_count += 1

        for pattern in classification.patterns:
            self.proxy_types[pattern.value] = self.proxy_types.get(pattern.value, 0) + 1

        if classification.match_count > 1:
            count = classification.match_count
            self.multi_proxy_contracts_count[count] = self.multi_proxy_contracts_count.get(count, 0) + 1
            self.multi_proxy_contracts.setdefault(str(classification.chain_id), []).append(classification.address)

    def duration_stats(self) -> Dict[str, Optional[float]]:
        if not self.durations_ms:
            return {
                "averageDurationMs": None,
                "minDurationMs": None,
                "maxDurationMs": None,
                "medianDurationMs": None,
            }
        return {
            "averageDurationMs": sum(self.durations_ms) / len(self.durations_ms),
            "minDurationMs": min(self.durations_ms),
            "maxDurationMs": max(self.durations_ms),
            "medianDurationMs": statistics.median(self.durations_ms),
        }

    def to_artifacts(self) -> Dict[str, Any]:
        return {
            "results.json": {
                "analyzedContracts": self.analyzed_contracts,
                "proxyCount": self.proxy_count,
                "proxyTypes": self.proxy_types,
                "multiProxyContractsCount": self.multi_proxy_contracts_count,
            },
            "multi-proxy-contracts.json": self.multi_proxy_contracts,
            "durations-stats.json": self.duration_stats(),
        }


class RunAggregate(BaseModel):
    """
    Counters of the candidate resolution pass.

    A classified contract lands either in the diamond registry or in the
    combination and implementation-count histograms, never in both.
    """

    processed_contracts: int = 0
    checked_chains: List[str] = Field(default_factory=list)
    # Comma-joined pattern label -> number of contracts
    multi_proxy_contract_types: Dict[str, int] = Field(default_factory=dict)
    # Number of distinct resolved implementations -> number of contracts
    implementation_count: Dict[int, int] = Field(default_factory=dict)
    # Chain id -> address -> [label, implementation, implementation, ...]
    multi_implementation_addresses: Dict[str, Dict[str, List[str]]] = Field(default_factory=dict)
    diamond_proxies: Dict[str, List[str]] = Field(default_factory=dict)
    diamond_facets: Dict[str, Dict[str, List[str]]] = Field(default_factory=dict)

    def add_checked_chain(self, chain_id: str) -> None:
        if chain_id not in self.checked_chains:
            self.checked_chains.append(chain_id)

    def record(self, classification: ContractClassification) -> None:
        chain_id = str(classification.chain_id)
        self.processed_contracts += 1

        if classification.is_diamond:
            self.diamond_proxies.setdefault(chain_id, []).append(classification.address)
            if classification.facets:
                self.diamond_facets.setdefault(chain_id, {})[classification.address] = list(classification.facets)
            return

        label = classification.label
        self.multi_proxy_contract_types[label] = self.multi_proxy_contract_types.get(label, 0) + 1

        count = classification.implementation_count
        self.implementation_count[count] = self.implementation_count.get(count, 0) + 1

        if count > 1:
            self.multi_implementation_addresses.setdefault(chain_id, {})[classification.address] = [
                label,
                *classification.implementations,
            ]

    def to_artifacts(self) -> Dict[str, Any]:
        return {
            "result.json": {
                "processedContracts": self.processed_contracts,
                "checkedChains": self.checked_chains,
                "numberOfImplementationAddressesCount": self.implementation_count,
                "multiProxyContractTypes": self.multi_proxy_contract_types,
            },
            "multi-implementation-addresses.json": self.multi_implementation_addresses,
            "diamond-proxies.json": self.diamond_proxies,
            "diamond-facets.json": self.diamond_facets,
        }
