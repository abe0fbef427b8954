"""Sample VSM document: a ten-operation gear line fed at 8 units per hour."""

import copy
from typing import Any


def _station(
    id: str,
    name: str,
    cycle_time: float,
    step: int,
    machine_id: str | None = None,
    machine_id_display: str | None = None,
) -> dict[str, Any]:
    station: dict[str, Any] = {
        "id": id,
        "name": name,
        "cycleTime": cycle_time,
        "processStep": step,
        "uptimePercent": 100,
    }
    if machine_id is not None:
        station.update(
            batchSize=1,
            setupTime=0,
            machineId=machine_id,
            machineIdDisplay=machine_id_display,
        )
    return station


SAMPLE_VSM_DATA: dict[str, Any] = {
    "stations": [
        _station("35ebd592-94a6-4cc8-9f9a-53c1810b9c31", "Lathe", 206, 10,
                 "01edbf3c-ce97-4e78-9208-84dc50871a18", "617671"),
        _station("d01cf30a-2310-427d-873b-2868b2e828f4", "Hob", 191, 20,
                 "485d295a-b2ab-4775-a8e5-ffd3de64791c", "234628"),
        _station("8608d381-d658-454d-9ee8-55c387d00d66", "Drill", 170, 30,
                 "5a106ef8-90ab-4608-af34-3941a89c67ba", "233540"),
        _station("78167eee-f7f8-4e3b-aca3-f46f45734e82", "Shaver", 112, 40,
                 "115514a0-1ce3-48f5-a0f8-9f8ad09ef85f", "235966"),
        _station("5e0bfe4b-1816-42a6-99f9-969c26594c64", "Spline Roller", 35, 50,
                 "4df3147a-5cff-407f-a539-603c03fa2c0e", "245301"),
        _station("8869256e-6d80-4824-8c84-132817788d58", "Lathe", 55, 60,
                 "b566a90c-b59d-40ed-8f27-2d7c7f5bea39", "621490"),
        # Outside department, no backing machine
        _station("0be45bbb-8dd3-4623-bd22-dc5b05390b1a", "Heat Treat Dept", 360, 70),
        _station("35a0da05-cd25-4d53-ae5d-ac3cc33d8c7e", "Grinder", 123, 80,
                 "544a6068-7922-441d-9324-d91d12f1c157", "614598"),
        _station("62f6b0b1-9e9c-4c5c-bdcc-4d8f49b738ba", "Grinder", 106, 90,
                 "234aaad8-7d2d-430d-9ddb-33fc4840315a", "614773"),
        _station("f66c806c-4637-4693-83b0-4dd03176756b", "Polisher", 52, 100,
                 "43a95e05-9154-446e-a264-bd5178e3cd40", "614858"),
    ],
    "operationNames": {"70": "Heat Treat", "75": "Heat Treat"},
    "rawMaterialUPH": 8,
}


def sample_vsm_document() -> dict[str, Any]:
    """A fresh copy of the sample document, safe for callers to modify."""
    return copy.deepcopy(SAMPLE_VSM_DATA)
