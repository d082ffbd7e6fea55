"""
Bridge Indexer

Reconstructs cross-chain bridge state from the ordered bridge-contract
event stream.
"""

__version__ = "0.1.0"
