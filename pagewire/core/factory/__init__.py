from .pagewire_builder import PagewireBuilder
from .plugin import PagewirePlugin

__all__ = ["PagewireBuilder", "PagewirePlugin"]
