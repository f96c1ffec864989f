"""Solana wallet cleanup service: absorb empty accounts, burn tokens and NFTs, earn points."""

__version__ = "1.0.0"
