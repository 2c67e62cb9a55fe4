from typing import Any, Dict

from proxyscan.models.contract import ContractRecord


class ContractRecordMapper:
    @staticmethod
    def corpus_row_to_record(row: Dict[str, Any]) -> ContractRecord:
        """Maps a row of the corpus page scan to a ContractRecord."""
        return ContractRecord(
            chain_id=int(row["chain_id"]),
            address=row["address"],
            bytecode=row.get("code") or "",
            created_at=row.get("created_at"),
            creation_match=row.get("creation_match"),
            runtime_match=row.get("runtime_match"),
        )

    @staticmethod
    def runtime_code_to_record(chain_id: Any, address: str, code: str) -> ContractRecord:
        return ContractRecord(chain_id=int(chain_id), address=address, bytecode=code or "")
