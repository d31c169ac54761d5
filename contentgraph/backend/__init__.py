"""contentgraph HTTP server.

FastAPI app exposing the graph mirror:
- Full and incremental sync triggers
- Graph, neighbourhood, path and tag-cluster views
- Analytics layout for the graph view
"""

from contentgraph.backend.app import create_app

__all__ = ["create_app"]
