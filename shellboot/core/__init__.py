"""
# ==== CORE PACKAGE INITIALIZER ==== #

Provides package initialization for the `shellboot.core` namespace.

Notes:
- This file intentionally contains no runtime logic.
- Startup flow lives in `shellboot.core.startup`; the deferred merge machinery
  in `shellboot.core.deferred` and `shellboot.core.session`.
"""
