from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import get_accessory_registry, get_scan_orchestrator
from ..models import ScanStatus, VolumeAccessoryState
from ..services.accessories import AccessoryRegistry
from ..services.scan_orchestrator import VolumeScanOrchestrator

router = APIRouter(prefix="/api", tags=["volumes"])


@router.get("/volumes", response_model=List[VolumeAccessoryState])
async def get_volumes(
    registry: AccessoryRegistry = Depends(get_accessory_registry),
) -> List[VolumeAccessoryState]:
    """Volumes published by the last completed scan, including offline ones."""
    return registry.get_accessories()


@router.get("/volumes/{name}", response_model=VolumeAccessoryState)
async def get_volume(
    name: str, registry: AccessoryRegistry = Depends(get_accessory_registry)
) -> VolumeAccessoryState:
    accessory = registry.get_accessory(name)
    if accessory is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Volume '{name}' not found"
        )
    return accessory


@router.get("/status", response_model=ScanStatus)
async def get_status(
    orchestrator: VolumeScanOrchestrator = Depends(get_scan_orchestrator),
) -> ScanStatus:
    return orchestrator.status()


@router.post("/refresh", status_code=status.HTTP_202_ACCEPTED)
async def refresh(
    orchestrator: VolumeScanOrchestrator = Depends(get_scan_orchestrator),
) -> dict:
    """Manual rescan. Coalesced with the running scan if one is in progress."""
    orchestrator.start()
    return {"success": True, "scanning": orchestrator.is_scanning}


@router.post("/purge")
async def purge_offline(
    registry: AccessoryRegistry = Depends(get_accessory_registry),
) -> dict:
    purged = registry.purge_offline()
    return {"success": True, "purged": purged}
