from .guard import ConsistencyGuard

__all__ = ["ConsistencyGuard"]
