import logging
from typing import Any, Dict, List

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL

logger = logging.getLogger("Sourcify Corpus Client")

CONTRACT_PAGE_QUERY = text(
    """
    SELECT
        sourcify_matches.created_at,
        sourcify_matches.creation_match,
        sourcify_matches.runtime_match,
        CONCAT('0x', encode(contract_deployments.address, 'hex')) AS address,
        encode(code.code, 'hex') AS code,
        contract_deployments.chain_id
    FROM sourcify_matches
        JOIN verified_contracts ON verified_contracts.id = sourcify_matches.verified_contract_id
        JOIN contract_deployments ON contract_deployments.id = verified_contracts.deployment_id
        JOIN contracts ON contracts.id = contract_deployments.contract_id
        JOIN code ON code.code_hash = contracts.runtime_code_hash
    OFFSET :offset
    LIMIT :limit
    """
)

RUNTIME_CODE_QUERY = text(
    """
    SELECT
        encode(code.code, 'hex') AS code
    FROM sourcify_matches
        JOIN verified_contracts ON verified_contracts.id = sourcify_matches.verified_contract_id
        JOIN contract_deployments ON contract_deployments.id = verified_contracts.deployment_id
        JOIN contracts ON contracts.id = contract_deployments.contract_id
        JOIN code ON code.code_hash = contracts.runtime_code_hash
    WHERE decode(:address, 'hex') = contract_deployments.address
        AND contract_deployments.chain_id = :chain_id
    """
)


class SourcifyCorpusClient:
    """Read-only access to the verified contract corpus of a Sourcify PostgreSQL database."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        user: str = "postgres",
        password: str = "",
        database: str = "sourcify",
    ):
        self.url = URL.create(
            "postgresql+psycopg2",
            username=user,
            password=password or None,
            host=host,
            port=port,
            database=database,
        )

        # One pooled connection per run
        self.engine = create_engine(self.url, pool_size=1, max_overflow=0, pool_pre_ping=True)
        logger.info(f"Using Sourcify corpus at {host}:{port}/{database}")

    def fetch_contracts_page(self, offset: int, limit: int) -> List[Dict[str, Any]]:
        """One page of the full corpus scan: created_at, creation_match, runtime_match, address, code, chain_id."""
        with self.engine.connect() as connection:
            result = connection.execute(CONTRACT_PAGE_QUERY, {"offset": offset, "limit": limit})
            return [dict(row) for row in result.mappings()]

    def fetch_runtime_code(self, address: str, chain_id: int) -> List[str]:
        """
        Point lookup of the runtime bytecode deployed at (address, chain_id).
        Returns every matching row; more than one row means the corpus is inconsistent.
        """
        address_hex = address[2:] if address.startswith("0x") else address
        with self.engine.connect() as connection:
            result = connection.execute(RUNTIME_CODE_QUERY, {"address": address_hex.lower(), "chain_id": int(chain_id)})
            return [row.code for row in result]

    def close(self) -> None:
        self.engine.dispose()
