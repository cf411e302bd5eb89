"""
Authentication and authorization package.

- token_verifier: HMAC bearer token verification into an ``Identity``.
- policy: the permission-string and ownership-hint strategies.
- middleware: request glue that runs the verifier and policy per route.
"""
