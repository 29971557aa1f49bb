"""AirGap coin library.

Transaction preparation and broadcasting (online) are kept apart from
signing (offline). Protocols: Tezos (xtz), Aeternity (ae), Ethereum (eth).
"""

__version__ = "0.3.5"
