"""Form inputs accepted by the console mutation handlers."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.domain import SalespersonStatus, VisitKind, parse_amount


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class SalespersonForm(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    status: SalespersonStatus = SalespersonStatus.ACTIVE

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("phone", "email", "latitude", "longitude", mode="before")
    @classmethod
    def _optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @model_validator(mode="after")
    def _both_coordinates_or_neither(self) -> "SalespersonForm":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self


class LocationForm(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class VisitForm(BaseModel):
    salesperson_id: int
    client_name: str = Field(..., min_length=1)
    address: Optional[str] = None
    notes: Optional[str] = None
    kind: VisitKind = VisitKind.VISIT

    @field_validator("client_name", mode="before")
    @classmethod
    def _strip_client(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("address", "notes", mode="before")
    @classmethod
    def _optional(cls, value: Any) -> Any:
        return _blank_to_none(value)


class OrderForm(BaseModel):
    salesperson_id: int
    client_name: str = Field(..., min_length=1)
    products: Optional[str] = None
    total_amount: float = Field(default=0.0, ge=0)

    @field_validator("client_name", mode="before")
    @classmethod
    def _strip_client(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("products", mode="before")
    @classmethod
    def _optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("total_amount", mode="before")
    @classmethod
    def _parse_total(cls, value: Any) -> float:
        return parse_amount(value)
