"""
API request models using Pydantic.
"""
from typing import Optional
from pydantic import BaseModel, Field


class ReprocessRequest(BaseModel):
    """Request body for the batch reprocessing endpoint."""
    tenant_id: str = Field(
        min_length=1,
        description="Tenant whose blocks are reprocessed"
    )
    block_id: Optional[str] = Field(
        default=None,
        description="Only reprocess this block"
    )
    tractor_id: Optional[str] = Field(
        default=None,
        description="Only re-derive visits of this tractor"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "tenant_id": "tenant_1",
                "block_id": None,
                "tractor_id": None,
            }
        }
