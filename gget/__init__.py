"""Fetch gno.land packages over RPC, analyse their imports and download them in parallel."""

__version__ = "0.1.0"

__all__ = ["cache", "dependency", "query", "parallel", "fetch", "cli"]