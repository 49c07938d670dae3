"""Drying device inventory kept in the local store"""
from typing import List

import structlog

from domain.exceptions import DeviceNotFoundError
from domain.models import Device
from domain.models.device import DeviceCreate, DeviceUpdate
from infrastructure.storage import LocalStore

logger = structlog.get_logger()

SEED_DEVICES = [
    {"number": "1", "type": "Kondenstrockner", "model": "Trotec TTK 100"},
    {"number": "2", "type": "Seitenkanalverdichter", "model": "Trotec VE 4"},
]


class DeviceInventory:
    def __init__(self, store: LocalStore[Device]):
        self.store = store
        self._devices: List[Device] = []

    def load(self) -> List[Device]:
        """Read the inventory; a store that never existed is seeded"""
        if not self.store.exists():
            self._devices = [Device(**seed) for seed in SEED_DEVICES]
            self.store.save(self._devices)
            logger.info("device_inventory_seeded", count=len(self._devices))
        else:
            self._devices = self.store.load()
        return list(self._devices)

    def list_devices(self, search: str = "") -> List[Device]:
        term = search.strip().lower()
        if not term:
            return list(self._devices)
        return [
            d for d in self._devices
            if term in d.number.lower() or term in d.model.lower() or term in d.type.lower()
        ]

    def get(self, device_id: str) -> Device:
        device = next((d for d in self._devices if d.id == device_id), None)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device

    async def create(self, data: DeviceCreate) -> Device:
        device = Device(**data.model_dump())
        self._devices.append(device)
        await self.store.asave(self._devices)
        logger.info("device_created", device_id=device.id, number=device.number)
        return device

    async def update(self, device_id: str, data: DeviceUpdate) -> Device:
        current = self.get(device_id)
        device = current.model_copy(update=data.model_dump(exclude_unset=True, exclude_none=True))
        self._devices = [device if d.id == device_id else d for d in self._devices]
        await self.store.asave(self._devices)
        return device

    async def delete(self, device_id: str) -> None:
        self.get(device_id)
        self._devices = [d for d in self._devices if d.id != device_id]
        await self.store.asave(self._devices)
        logger.info("device_deleted", device_id=device_id)
