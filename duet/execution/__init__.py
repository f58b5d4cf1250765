"""Duet execution — run a shared buffer in whatever language it is in.

Public surface
--------------
``ExecutionDispatcher`` — routes (code, language) to a runner
``RuntimeLoader``       — lazy, de-duplicated hosted-runtime load
``LoaderState``         — unloaded / loading / ready
``strip_cython``        — lossy Cython → Python stripper
``LANGUAGES``           — the language registry
"""

from .cython_stripper import strip_cython
from .dispatcher import ExecutionDispatcher
from .languages import LANGUAGES, ExecutionPath, LanguageSpec
from .loader import LoaderState, RuntimeLoader

__all__ = [
    "ExecutionDispatcher",
    "ExecutionPath",
    "LANGUAGES",
    "LanguageSpec",
    "LoaderState",
    "RuntimeLoader",
    "strip_cython",
]
