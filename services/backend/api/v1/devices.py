"""Devices API - drying equipment inventory"""
from typing import List

from fastapi import APIRouter, Depends

from application.device_inventory import DeviceInventory
from domain.models import Device
from domain.models.device import DeviceCreate, DeviceUpdate
from .dependencies import domain_errors, get_device_inventory

router = APIRouter()


@router.get("/", response_model=List[Device])
async def list_devices(search: str = "", inventory: DeviceInventory = Depends(get_device_inventory)):
    """List devices; `search` matches number, model or type"""
    return inventory.list_devices(search)


@router.post("/", response_model=Device, status_code=201)
async def create_device(data: DeviceCreate, inventory: DeviceInventory = Depends(get_device_inventory)):
    return await inventory.create(data)


@router.patch("/{device_id}", response_model=Device)
async def update_device(
    device_id: str,
    data: DeviceUpdate,
    inventory: DeviceInventory = Depends(get_device_inventory),
):
    with domain_errors():
        return await inventory.update(device_id, data)


@router.delete("/{device_id}", status_code=204)
async def delete_device(device_id: str, inventory: DeviceInventory = Depends(get_device_inventory)):
    with domain_errors():
        await inventory.delete(device_id)
