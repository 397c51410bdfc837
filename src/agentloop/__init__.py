"""
agentloop - Agent Execution Core

Drives an iterative tool-calling loop against pluggable inference backends,
with parallel tool dispatch, SSE stream decoding, and resilience policies.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("agentloop")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "__version__",
]
