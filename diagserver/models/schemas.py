from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class RootResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: Literal[True] = True
    env: str
    deployed_at: str = Field(alias="deployedAt")
    message: str
    storage_conn_masked: str = Field(alias="storageConnMasked")


class DiagSent(BaseModel):
    ok: Literal[True] = True
    sent: str


class DiagError(BaseModel):
    ok: Literal[False] = False
    error: str = Field(min_length=1)
