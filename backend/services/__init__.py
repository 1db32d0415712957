"""Services package for the matrix activation client.

`services.matrix` is the resolver core. `services.account_cache` and
`services.matrix.client` bind it to a live RPC endpoint and are imported
directly so the core stays importable without the HTTP stack.
"""
