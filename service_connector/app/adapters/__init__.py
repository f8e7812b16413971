"""
Adapters package for the Connector Service.

Contains HTTP client wrappers for the identity platform and Microsoft Graph.
These adapters encapsulate:

- Endpoint URLs and request shapes
- Raising provider errors that the shared classifier understands
- Composing token refresh with retries for authenticated calls

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .authenticated_call import AuthenticatedCall
from .graph_client import GraphApiError, GraphClient
from .token_client import TokenEndpointClient, TokenEndpointError, TokenResponse

__all__ = [
    "AuthenticatedCall",
    "GraphApiError",
    "GraphClient",
    "TokenEndpointClient",
    "TokenEndpointError",
    "TokenResponse",
]
