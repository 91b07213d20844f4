"""
Cidrsweep package.

Sweeps a CIDR block with one reachability probe per address, bounded
concurrency and periodic progress reporting.
"""

from .cli import main

__all__ = ["main"]
