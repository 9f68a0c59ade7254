"""
extender — native extension build orchestrator.

Discovers extension source trees by their manifest, compiles and archives
each one with per-platform command templates, generates the symbol
registration stub, and links everything into a single engine executable.
"""

__version__ = "0.1.0"
EXTENDER_VERSION = "v0"
PACKAGE_NAME = "extender"
SCHEMA_VERSION = "0.1"
MANIFEST_NAME = "ext.manifest"
