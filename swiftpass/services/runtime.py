import threading

from swiftpass.services.rotator import RotatorRegistry
from swiftpass.services.station import ScanStation

# -----------------------------
# Process-wide scanner/rotator state (in-memory)
# -----------------------------
ROTATORS = RotatorRegistry()

_STATION_LOCK = threading.Lock()
_STATION: ScanStation | None = None


def get_rotators() -> RotatorRegistry:
    return ROTATORS


def get_station() -> ScanStation:
    global _STATION
    with _STATION_LOCK:
        if _STATION is None:
            _STATION = ScanStation()
        return _STATION


def set_station(station: ScanStation | None) -> None:
    global _STATION
    with _STATION_LOCK:
        _STATION = station


def reset_runtime() -> None:
    ROTATORS.clear()
    set_station(None)
