from .composer import DraftComposer

__all__ = ["DraftComposer"]
