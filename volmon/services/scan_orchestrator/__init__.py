from .notification_handler import NotificationHandler
from .scan_orchestrator import VolumeScanOrchestrator
from .scan_state import ScanState
from .volume_policy import VolumePolicy

__all__ = ["NotificationHandler", "ScanState", "VolumePolicy", "VolumeScanOrchestrator"]
