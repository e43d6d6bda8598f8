from pydantic import BaseModel


class HealthStatus(BaseModel):
    status: str
    version: str


class ConversionFailure(BaseModel):
    success: bool = False
    message: str
