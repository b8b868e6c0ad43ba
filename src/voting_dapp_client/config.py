"""
Voting client configuration.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import NetworkDescriptor
from .utils import normalize_address, parse_units, validate_address


class VotingSettings(BaseSettings):
    """Settings for the voting client, read from VOTING_* environment variables"""

    model_config = SettingsConfigDict(env_prefix="VOTING_", env_file=".env", extra="ignore")

    # Contracts
    voting_contract_address: str
    token_contract_address: str
    voting_artifact_path: Optional[str] = None
    token_artifact_path: Optional[str] = None

    # Proposal fee in whole tokens, scaled by token_decimals
    proposal_fee: str = "10"
    token_decimals: int = 18

    # Network
    chain_id: int = 1337
    chain_name: str = "Local Ganache"
    rpc_url: str = "http://127.0.0.1:8545"
    native_currency_name: str = "Ethereum"
    native_currency_symbol: str = "ETH"
    native_currency_decimals: int = 18

    # Transactions
    tx_timeout: float = Field(default=120.0, gt=0)
    poll_latency: float = Field(default=0.5, gt=0)

    # Local wallet keys
    private_keys: List[SecretStr] = Field(default_factory=list)

    log_level: str = "INFO"

    @field_validator("voting_contract_address", "token_contract_address")
    @classmethod
    def checksum_address(cls, value: str) -> str:
        if not validate_address(value):
            raise ValueError(f"Invalid contract address: {value}")
        return normalize_address(value)

    @model_validator(mode="after")
    def valid_fee(self) -> "VotingSettings":
        if self.proposal_fee_base_units <= 0:
            raise ValueError("proposal_fee must be positive")
        return self

    @property
    def proposal_fee_base_units(self) -> int:
        return parse_units(self.proposal_fee, self.token_decimals)

    def network_descriptor(self) -> NetworkDescriptor:
        return NetworkDescriptor(
            chain_id=self.chain_id,
            name=self.chain_name,
            rpc_url=self.rpc_url,
            currency_name=self.native_currency_name,
            currency_symbol=self.native_currency_symbol,
            currency_decimals=self.native_currency_decimals,
        )


@lru_cache()
def get_settings() -> VotingSettings:
    return VotingSettings()
