"""Drying device inventory"""
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

DEVICE_TYPES = [
    "Kondenstrockner",
    "Adsorptionstrockner",
    "Seitenkanalverdichter",
    "HEPA-Filter",
    "Ventilator",
    "Infrarotplatte",
    "Estrich-Dämmschichttrocknung",
    "Sonstiges",
]

DEVICE_AVAILABLE = "Verfügbar"


class DeviceBase(BaseModel):
    number: str = Field(min_length=1)
    type: str = Field(default="Kondenstrockner", min_length=1)
    model: str = ""


class Device(DeviceBase):
    id: str = Field(default_factory=lambda: uuid4().hex)
    status: str = DEVICE_AVAILABLE


class DeviceCreate(DeviceBase):
    pass


class DeviceUpdate(BaseModel):
    number: Optional[str] = None
    type: Optional[str] = None
    model: Optional[str] = None
    status: Optional[str] = None
