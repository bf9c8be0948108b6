"""FastAPI service for TevePlay IPTV accounts.

This package provides REST API endpoints for user accounts, saved IPTV
provider profiles and a paginating proxy over the provider's player API.
"""

__version__ = "0.1.0"
