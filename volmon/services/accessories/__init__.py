from .accessory_registry import AccessoryRegistry

__all__ = ["AccessoryRegistry"]
