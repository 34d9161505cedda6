from .volume_watcher import VolumeWatcher, WatchEntry

__all__ = ["VolumeWatcher", "WatchEntry"]
