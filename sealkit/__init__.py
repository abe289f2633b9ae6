"""Sector sealing helpers: sector parameters, C1 proof files, tree proofs and commitments."""

__version__ = "0.1.0"