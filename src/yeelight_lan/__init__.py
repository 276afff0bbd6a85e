"""LAN control client for Yeelight smart bulbs.

Discovery over SSDP-style multicast, a persistent JSON-lines control
session with reply correlation, and music mode streaming.
"""

__version__ = "0.1.0"
