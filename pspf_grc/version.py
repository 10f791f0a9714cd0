__version__ = "1.0.0"
__application__ = "PSPF GRC Tracker"
__description__ = "Protective Security Policy Framework compliance tracking"
