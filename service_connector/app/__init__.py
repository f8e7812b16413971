"""
Graph Connector Service package for the Access Layer.

The connector holds the credential lifecycle and resilience core every Graph
caller goes through:
- Token lifecycle: per-identity access tokens refreshed shortly before expiry,
  with concurrent refreshes for one identity coalesced into a single call
- Retries: transient provider failures retried with Retry-After aware backoff
- Caching: short-lived folder and address lookups with masked diagnostics
- Translation: timezone and folder taxonomy tables between dialects

Structure:
- app.main: FastAPI app, diagnostics routes, and wiring.
- app.auth: Credential store interface and token lifecycle manager.
- app.adapters: Token endpoint and Graph HTTP clients, authenticated calls.
- app.caching: TTL resource cache.
- app.translation: Timezone and folder translation tables.
- app.directory: Cached directory lookups built on the above.
"""
