from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """Base schema: immutable, populated either by field name or by column alias."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class DeviceRow(BaseSchema):
    ip_address: str = Field(default="", alias="IPAddress")
    port: Optional[int] = Field(default=None, alias="Port")
    transport: str = Field(default="", alias="Transport")
    service: str = Field(default="", alias="Service")
    operating_system: str = Field(default="", alias="OperatingSystem")
    country: str = Field(default="", alias="Country")
    country_code: str = Field(default="", alias="CountryCode")
    city: str = Field(default="", alias="City")
    longitude: Optional[float] = Field(default=None, alias="Longitude")
    latitude: Optional[float] = Field(default=None, alias="Latitude")
    ransom_letter: str = Field(alias="RansomLetter", min_length=1)


DEVICE_COLUMNS: List[str] = [info.alias or name for name, info in DeviceRow.model_fields.items()]
NUMERIC_DTYPES = {"Port": "Int64", "Longitude": "float64", "Latitude": "float64"}


class LocationPoint(BaseSchema):
    country: str
    country_code: str
    city: str
    longitude: float
    latitude: float
    n: int = Field(ge=1)
