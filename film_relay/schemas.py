from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class Session(BaseModel):
    film_id: str
    production_id: str

    def to_api(self) -> dict:
        return {
            "success": True,
            "filmGuid": self.film_id,
            "productionCompanyGuid": self.production_id,
        }


class SessionUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    film_id: Optional[str] = Field(default=None, alias="filmGuid")
    production_id: Optional[str] = Field(default=None, alias="productionCompanyGuid")

    def changes(self) -> dict:
        # Empty strings are treated like missing fields, as in the original UI flow.
        out = {}
        if self.film_id:
            out["film_id"] = self.film_id
        if self.production_id:
            out["production_id"] = self.production_id
        return out


class SlotState(BaseModel):
    connected: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)
    last_update: Optional[str] = None
    owner: Optional[str] = None

    def to_api(self) -> dict:
        return {
            "connected": self.connected,
            "metadata": self.metadata,
            "lastUpdate": self.last_update,
        }


class ConnectionDescriptor(BaseModel):
    serverAddress: str
    port: int
    protocol: str
    path: str
    filmId: str
    productionId: str
    slotId: int
    cameraName: str
    timestamp: str
