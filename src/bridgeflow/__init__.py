"""bridgeflow - run a quoted cross-chain transfer end to end.

Dispatches the quoted transaction plan on its source chain (EVM, Solana or
Aptos), signs the auth challenge, and tracks the transfer to completion.
"""

__version__ = "0.1.0"
