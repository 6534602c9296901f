"""DirForge: transactional scaffold engine.

Materializes a declared directory tree on disk so that the run either fully
succeeds or leaves the filesystem as it was.
"""

__version__ = "0.1.0"
