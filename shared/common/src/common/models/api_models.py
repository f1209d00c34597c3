"""Wire models exchanged with the backend accounting service."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, extra="ignore")


class OperatorIdentity(_CamelModel):
    id: str
    wallet_address: str = Field(alias="walletAddress")
    username: Optional[str] = None
    total_mined: float = Field(default=0.0, alias="totalMined")
    virtual_balance: Optional[float] = Field(default=None, alias="virtualBalance")


class AuthResponse(_CamelModel):
    token: str
    user: OperatorIdentity


class SessionStartResponse(_CamelModel):
    session_id: str = Field(alias="sessionId")


class BalanceResponse(_CamelModel):
    virtual_balance: float = Field(alias="virtualBalance")


class HealthResponse(_CamelModel):
    status: str


class GpuReading(_CamelModel):
    hashrate: float
    temperature: float
    power: Optional[float] = None


class MinerSummary(_CamelModel):
    """Body of ``GET /summary`` on the miner API port."""

    gpus: list[GpuReading] = Field(default_factory=list)


class MiningStats(_CamelModel):
    """Payload of the ``mining_stats`` realtime message."""

    user_id: str = Field(alias="userId")
    session_id: str = Field(alias="sessionId")
    hash_rate: float = Field(alias="hashRate")
    temperature: float
    power: float = 0.0


class RealtimeMessage(_CamelModel):
    type: str
    payload: Any = None


class PoolMinerStats(_CamelModel):
    hashrate: float = 0.0


class PoolMinerResponse(_CamelModel):
    stats: Optional[PoolMinerStats] = None
    paid: float = 0.0
