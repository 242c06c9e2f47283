from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: str
    backbone: str
    connections: int

class InfoResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service: str
    version: str
    socket_path: str = Field(alias="socketPath")
    status: str
