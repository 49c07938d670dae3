"""Device inventory: seeding, search and edits"""
import pytest

from application.device_inventory import SEED_DEVICES, DeviceInventory
from domain.exceptions import DeviceNotFoundError
from domain.models import Device
from domain.models.device import DeviceCreate, DeviceUpdate
from infrastructure.storage import LocalStore


@pytest.fixture
def device_store(blob_storage) -> LocalStore:
    return LocalStore(blob_storage, "qservice_devices", Device)


@pytest.fixture
def inventory(device_store) -> DeviceInventory:
    inventory = DeviceInventory(device_store)
    inventory.load()
    return inventory


def test_first_load_seeds_inventory(inventory, device_store):
    assert [d.number for d in inventory.list_devices()] == [seed["number"] for seed in SEED_DEVICES]
    assert len(device_store.load()) == len(SEED_DEVICES)


async def test_emptied_inventory_is_not_reseeded(inventory, device_store):
    for device in inventory.list_devices():
        await inventory.delete(device.id)

    reloaded = DeviceInventory(device_store)

    assert reloaded.load() == []


async def test_search_matches_number_model_and_type(inventory):
    await inventory.create(DeviceCreate(number="17", type="Adsorptionstrockner", model="Dantherm AD 400"))

    assert [d.number for d in inventory.list_devices("dantherm")] == ["17"]
    assert [d.number for d in inventory.list_devices("17")] == ["17"]
    assert [d.number for d in inventory.list_devices("Seitenkanal")] == ["2"]
    assert len(inventory.list_devices("  ")) == 3


async def test_update_keeps_unset_fields(inventory, device_store):
    device = inventory.list_devices()[0]

    updated = await inventory.update(device.id, DeviceUpdate(status="Im Einsatz"))

    assert updated.status == "Im Einsatz"
    assert updated.model == device.model
    assert device_store.load()[0].status == "Im Einsatz"


async def test_unknown_device(inventory):
    with pytest.raises(DeviceNotFoundError):
        await inventory.delete("missing")
    with pytest.raises(DeviceNotFoundError):
        await inventory.update("missing", DeviceUpdate(model="x"))
