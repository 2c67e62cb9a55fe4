from datetime import datetime
from enum import Enum
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from proxyscan.models.proxy_pattern import ProxyPattern, ResolutionMethod
from utils.formatter_utils import to_normalized_address

LABEL_SEPARATOR = ", "


class ClassificationKind(str, Enum):
    NON_PROXY = "NON_PROXY"
    SINGLE_PROXY = "SINGLE_PROXY"
    MULTI_PROXY = "MULTI_PROXY"
    DIAMOND = "DIAMOND"


class ContractRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    chain_id: int
    address: str
    bytecode: str = ""

    created_at: datetime | None = None
    creation_match: str | None = None
    runtime_match: str | None = None

    @field_validator("address")
    @classmethod
    def _normalize_address(cls, value: str) -> str:
        normalized = to_normalized_address(value)
        if normalized is None:
            raise ValueError(f"Invalid contract address: {value}")
        return normalized


class ProxyMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    pattern: ProxyPattern
    # Byte offset of the instruction (or template) that triggered the match
    offset: int = 0
    slot: str | None = None
    selector: str | None = None
    # Only known at detection time for minimal proxy clones
    implementation: str | None = None

    @property
    def name(self) -> str:
        return self.pattern.value


class ResolvedImplementation(BaseModel):
    model_config = ConfigDict(frozen=True)

    pattern: ProxyPattern
    method: ResolutionMethod
    # One address for singular patterns, the facet set for diamonds
    addresses: Tuple[str, ...]

    @property
    def address(self) -> str:
        return self.addresses[0]


class ContractClassification(BaseModel):
    chain_id: int
    address: str
    kind: ClassificationKind = ClassificationKind.NON_PROXY
    patterns: List[ProxyPattern] = Field(default_factory=list)
    # Distinct resolved addresses in resolution order
    implementations: List[str] = Field(default_factory=list)
    facets: List[str] = Field(default_factory=list)
    unresolved: List[ProxyPattern] = Field(default_factory=list)

    @property
    def is_diamond(self) -> bool:
        return self.kind == ClassificationKind.DIAMOND

    @property
    def match_count(self) -> int:
        return len(self.patterns)

    @property
    def implementation_count(self) -> int:
        return len(self.implementations)

    @property
    def label(self) -> str:
        """Comma-joined pattern names in detection order, e.g. 'EIP1967Proxy, LegacyUpgradeableProxy'."""
        return LABEL_SEPARATOR.join(p.value for p in self.patterns)


def classify_kind(patterns: List[ProxyPattern]) -> ClassificationKind:
    if not patterns:
        return ClassificationKind.NON_PROXY
    if ProxyPattern.DIAMOND in patterns:
        return ClassificationKind.DIAMOND
    if len(patterns) == 1:
        return ClassificationKind.SINGLE_PROXY
    return ClassificationKind.MULTI_PROXY
