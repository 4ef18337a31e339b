from .autosave import AutosaveScheduler

__all__ = ["AutosaveScheduler"]
