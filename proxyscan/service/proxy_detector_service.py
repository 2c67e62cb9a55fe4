from typing import Dict, List, Optional, Tuple

from pyevmasm import disassemble_all

from proxyscan.models.contract import ProxyMatch
from proxyscan.models.proxy_pattern import (
    PATTERN_ORDER,
    PROXY_PATTERN_CATALOG,
    ProxyPattern,
    ProxyPatternDefinition,
    ResolutionMethod,
)
from utils.formatter_utils import bytecode_to_bytes


class ProxyDetectorService:
    """
    Recognizes proxy patterns in runtime bytecode. Pure function of the
    bytecode: no I/O, no state between calls.

    Every catalog pattern is checked, so a contract can match several patterns.
    Each pattern is reported at most once (the first sub-signature found wins)
    and matches are returned in catalog priority order.
    """

    def __init__(self, catalog: Tuple[ProxyPatternDefinition, ...] = PROXY_PATTERN_CATALOG):
        self.catalog = catalog

        # Reverse indexes: sub-signature -> pattern definition
        self._push32_index: Dict[str, ProxyPatternDefinition] = {}
        self._push4_index: Dict[str, ProxyPatternDefinition] = {}
        self._sequence_index: Dict[Tuple[str, ...], ProxyPatternDefinition] = {}
        for definition in catalog:
            for word in definition.push32_words:
                self._push32_index[word.lower()] = definition
            for selector in definition.push4_selectors:
                self._push4_index[selector.lower()] = definition
            for sequence in definition.opcode_sequences:
                self._sequence_index[sequence] = definition

        self._max_sequence_length = max((len(s) for s in self._sequence_index), default=0)

    def detect(self, bytecode: Optional[str]) -> List[ProxyMatch]:
        """
        Returns all proxy pattern matches for the given runtime bytecode (hex
        string, 0x prefix optional). Raises BytecodeParseError for non-hex input.
        """
        code = bytecode_to_bytes(bytecode)
        if not code:
            return []

        matches: Dict[ProxyPattern, ProxyMatch] = {}

        for definition in self.catalog:
            template_match = self._match_templates(definition, code)
            if template_match is not None:
                matches.setdefault(definition.pattern, template_match)

        instructions = list(disassemble_all(code))

        # A contract that never delegates cannot be a proxy
        if any(instruction.name == "DELEGATECALL" for instruction in instructions):
            self._scan_instructions(instructions, matches)

        return sorted(matches.values(), key=lambda m: PATTERN_ORDER[m.pattern])

    @staticmethod
    def _match_templates(definition: ProxyPatternDefinition, code: bytes) -> Optional[ProxyMatch]:
        for template in definition.templates:
            if len(code) < template.size:
                continue

            prefix = bytes.fromhex(template.prefix)
            suffix = bytes.fromhex(template.suffix)
            suffix_start = template.address_offset + 20
            if code[: len(prefix)] != prefix or code[suffix_start : suffix_start + len(suffix)] != suffix:
                continue

            implementation = "0x" + code[template.address_offset : suffix_start].hex()
            return ProxyMatch(pattern=definition.pattern, offset=0, implementation=implementation)
        return None

    def _scan_instructions(self, instructions: list, matches: Dict[ProxyPattern, ProxyMatch]) -> None:
        recent: list = []

        for instruction in instructions:
            name = instruction.name

            if name == "PUSH32" and instruction.operand is not None:
                word = "0x%064x" % instruction.operand
                definition = self._push32_index.get(word)
                if definition is not None:
                    self._add_match(matches, definition, instruction.pc, word=word)

            elif name == "PUSH4" and instruction.operand is not None:
                selector = "0x%08x" % instruction.operand
                definition = self._push4_index.get(selector)
                if definition is not None:
                    self._add_match(matches, definition, instruction.pc, selector=selector)

            if self._max_sequence_length:
                recent.append(instruction)
                if len(recent) > self._max_sequence_length:
                    recent.pop(0)
                for length in range(2, len(recent) + 1):
                    sequence = tuple(i.name for i in recent[-length:])
                    definition = self._sequence_index.get(sequence)
                    if definition is not None:
                        self._add_match(matches, definition, recent[-length].pc)

    @staticmethod
    def _add_match(
        matches: Dict[ProxyPattern, ProxyMatch],
        definition: ProxyPatternDefinition,
        offset: int,
        word: Optional[str] = None,
        selector: Optional[str] = None,
    ) -> None:
        if definition.pattern in matches:
            return

        slot = definition.storage_slot
        hop_selector = None
        if definition.resolution == ResolutionMethod.BEACON:
            # The beacon address comes from the slot when the slot was seen,
            # otherwise from the proxy's beacon() accessor
            if word is None:
                slot, hop_selector = None, selector
        elif definition.resolution in (ResolutionMethod.ACCESSOR_CALL, ResolutionMethod.FACET_ENUMERATION):
            hop_selector = definition.accessor

        matches[definition.pattern] = ProxyMatch(
            pattern=definition.pattern,
            offset=offset,
            slot=slot,
            selector=hop_selector,
        )
