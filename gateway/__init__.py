"""
Horizon sidecar gateway: Cosmos REST routes and a CometBFT-style JSON-RPC
endpoint over `sidecar.app.Sidecar`.

    from gateway.server import create_app
    app = create_app()
"""

from sidecar.version import __version__

__all__ = ["__version__"]
