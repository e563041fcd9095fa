"""Pydantic response models for the transaction ledger."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    user_address: str
    type: str
    amount: float
    price: float | None = None
    points: int
    status: str
    tx_hash: str | None = None
    metadata: dict = Field(default_factory=dict, validation_alias="tx_metadata")
    timestamp: datetime


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
