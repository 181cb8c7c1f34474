"""Upsuider: zkLogin wallet binding and Twitch reward minting on Sui."""

__version__ = "0.1.0"
