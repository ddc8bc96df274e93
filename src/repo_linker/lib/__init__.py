"""Core library: URL matching, git access, the catalog, and the linker.

Primary namespaces:
- ``repo_linker.lib.linker`` for scan-and-link, cleanup, and clone.
- ``repo_linker.lib.catalog`` for the catalog store interface.
- ``repo_linker.lib.launcher`` for opening working copies in external tools.
"""
