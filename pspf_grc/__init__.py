"""PSPF GRC - compliance tracking for the Protective Security Policy Framework"""

from .grc_manager import GRCManager
from .version import __version__

__all__ = ["GRCManager", "__version__"]
