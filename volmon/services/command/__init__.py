from .spawn_helper import SpawnHelper, SpawnRequest, SpawnResult

__all__ = ["SpawnHelper", "SpawnRequest", "SpawnResult"]
