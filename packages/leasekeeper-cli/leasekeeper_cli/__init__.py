"""Leasekeeper CLI - administration and lease commands"""
__version__ = "0.1.0"
