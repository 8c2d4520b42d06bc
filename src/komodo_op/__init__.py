"""
komodo-op — 1Password to Komodo secret sync.

Reads items from a 1Password Connect vault and mirrors every
labelled field as a secret Komodo variable. Each run is a fresh,
stateless reconciliation: create, update, delete the orphans.
"""

__version__ = "0.1.0"
