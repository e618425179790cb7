"""Leasekeeper Gateway - HTTP surface of the lease manager"""
__version__ = "0.1.0"
