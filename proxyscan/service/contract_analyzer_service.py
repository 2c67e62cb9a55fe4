from typing import List, Optional

from proxyscan.models.contract import (
    ClassificationKind,
    ContractClassification,
    ContractRecord,
    ProxyMatch,
    classify_kind,
)
from proxyscan.models.proxy_pattern import ProxyPattern
from proxyscan.service.implementation_resolver_service import ImplementationResolverService
from proxyscan.service.proxy_detector_service import ProxyDetectorService
from utils.logger_utils import get_logger

logger = get_logger("Contract Analyzer Service")


class ContractAnalyzerService:
    """
    Classifies a single contract: detection only for the corpus scan,
    detection plus implementation resolution for candidate contracts.
    """

    def __init__(self, detector: Optional[ProxyDetectorService] = None):
        self.detector = detector or ProxyDetectorService()

    def detect(self, record: ContractRecord) -> List[ProxyMatch]:
        return self.detector.detect(record.bytecode)

    def classify(self, record: ContractRecord, matches: Optional[List[ProxyMatch]] = None) -> ContractClassification:
        """Detection-only classification, no chain I/O."""
        if matches is None:
            matches = self.detect(record)

        patterns = [match.pattern for match in matches]
        return ContractClassification(
            chain_id=record.chain_id,
            address=record.address,
            kind=classify_kind(patterns),
            patterns=patterns,
        )

    async def analyze(self, record: ContractRecord, resolver: ImplementationResolverService) -> ContractClassification:
        return await self.resolve(record, self.detect(record), resolver)

    async def resolve(
        self,
        record: ContractRecord,
        matches: List[ProxyMatch],
        resolver: ImplementationResolverService,
    ) -> ContractClassification:
        classification = self.classify(record, matches)

        if classification.kind == ClassificationKind.NON_PROXY:
            return classification

        if classification.is_diamond:
            # Facets are kept for bookkeeping, diamonds take no part in implementation counting
            diamond_match = next(m for m in matches if m.pattern == ProxyPattern.DIAMOND)
            resolved = await resolver.resolve(diamond_match, record.address)
            if resolved is None:
                classification.unresolved.append(ProxyPattern.DIAMOND)
            else:
                classification.facets.extend(resolved.addresses)
            return classification

        for match in matches:
            resolved = await resolver.resolve(match, record.address)
            if resolved is None:
                classification.unresolved.append(match.pattern)
                continue
            for address in resolved.addresses:
                if address not in classification.implementations:
                    classification.implementations.append(address)

        if classification.unresolved:
            logger.debug(
                f"Unresolved patterns for {record.address} on chain {record.chain_id}: "
                f"{', '.join(p.value for p in classification.unresolved)}"
            )
        return classification
