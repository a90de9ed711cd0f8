"""Clients for the external payment and identity verification services."""
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

import httpx

from agent_directory.config import settings

logger = logging.getLogger(__name__)

# EVM transaction hash: 0x + 32 bytes hex
TX_HASH_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")

INVALID_HASH_ERROR = "Invalid transaction hash format"
TX_FAILED_ERROR = "Transaction failed on-chain"
TX_NOT_FOUND_ERROR = "Transaction not found on Base"
SERVICE_UNAVAILABLE_ERROR = "Verification service unavailable"


def is_valid_tx_hash(tx_hash: str | None) -> bool:
    return isinstance(tx_hash, str) and TX_HASH_PATTERN.match(tx_hash) is not None


@dataclass
class TransactionVerification:
    verified: bool
    tx_hash: str | None = None
    network: str | None = None
    from_address: str | None = None
    to_address: str | None = None
    block_number: int | None = None
    verified_at: str | None = None
    error: str | None = None

    def details(self) -> dict | None:
        """Transfer details kept on a feedback record, only when verified."""
        if not self.verified:
            return None
        return {
            "network": self.network,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "block_number": self.block_number,
            "verified_at": self.verified_at,
        }

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class IdentityVerification:
    verified: bool
    public_key: str
    level: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def _parse_block_number(value) -> int | None:
    if not value:
        return None
    try:
        return int(value, 16)
    except (TypeError, ValueError):
        return None


class PaymentOracle:
    """
    Verifies x402 payment proofs against the Base chain via Basescan.

    Never raises: malformed hashes, failed or unknown transactions and
    service outages all come back as ``verified=False`` with an ``error``.
    """

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        network: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_url = api_url or settings.basescan_api_url
        self.api_key = api_key if api_key is not None else settings.basescan_api_key
        self.network = network or settings.payment_network
        self.timeout = timeout if timeout is not None else settings.oracle_timeout_seconds
        self.transport = transport

    def _params(self, **params) -> dict:
        if self.api_key:
            params["apikey"] = self.api_key
        return params

    def verify_transaction(self, tx_hash: str | None) -> TransactionVerification:
        if not is_valid_tx_hash(tx_hash):
            return TransactionVerification(verified=False, tx_hash=tx_hash, error=INVALID_HASH_ERROR)

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(
                    self.api_url,
                    params=self._params(module="transaction", action="gettxreceiptstatus", txhash=tx_hash),
                )
                data = response.json()
                result = data.get("result") if isinstance(data.get("result"), dict) else {}

                if data.get("status") == "1" and result.get("status") == "1":
                    tx_response = client.get(
                        self.api_url,
                        params=self._params(module="proxy", action="eth_getTransactionByHash", txhash=tx_hash),
                    )
                    tx_data = tx_response.json().get("result") or {}
                    if not isinstance(tx_data, dict):
                        tx_data = {}
                    logger.debug(f"Transaction {tx_hash} verified on {self.network}")
                    return TransactionVerification(
                        verified=True,
                        tx_hash=tx_hash,
                        network=self.network,
                        from_address=tx_data.get("from"),
                        to_address=tx_data.get("to"),
                        block_number=_parse_block_number(tx_data.get("blockNumber")),
                        verified_at=datetime.now(timezone.utc).isoformat(),
                    )

                if data.get("status") == "1" and result.get("status") == "0":
                    return TransactionVerification(verified=False, tx_hash=tx_hash, error=TX_FAILED_ERROR)

                return TransactionVerification(verified=False, tx_hash=tx_hash, error=TX_NOT_FOUND_ERROR)
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Payment verification failed for {tx_hash}: {e}")
            return TransactionVerification(verified=False, tx_hash=tx_hash, error=SERVICE_UNAVAILABLE_ERROR)


class IdentityOracle:
    """Looks up World ID verification status for an agent's public key on OneMolt."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.onemolt_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.oracle_timeout_seconds
        self.transport = transport

    def verify_identity(self, public_key: str) -> IdentityVerification:
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(f"{self.base_url}/molt/{public_key}")
                if response.is_success:
                    data = response.json()
                    return IdentityVerification(
                        verified=bool(data.get("verified", False)),
                        public_key=public_key,
                        level=data.get("verification_level"),
                    )
                return IdentityVerification(verified=False, public_key=public_key)
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"Identity lookup failed for {public_key}: {e}")
            return IdentityVerification(verified=False, public_key=public_key, error=str(e))


def get_payment_oracle() -> PaymentOracle:
    return PaymentOracle()


def get_identity_oracle() -> IdentityOracle:
    return IdentityOracle()
