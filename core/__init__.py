"""core

Pure game domain for APE ESCAPE (no UI, no I/O).
"""

API_VERSION = "core-ape-v1"
