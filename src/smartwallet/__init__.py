"""
smartwallet - minimal ERC-4337 style smart account on an in-process ledger.
"""

__version__ = "0.1.0"
