"""
Cross-Exchange Arbitrage Scanner.

Simulated discovery feed for price arbitrage between crypto exchanges:
synthetic opportunities served through a filterable query API, live price
updates pushed over WebSocket, and a client-side store that keeps a working
set of opportunities consistent with the stream.
"""

__version__ = "1.0.0"
__author__ = "Tim"
