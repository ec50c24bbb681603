"""MCP and HTTP server for the hardware store: cart, wishlist and checkout."""

__version__ = "0.1.0"
