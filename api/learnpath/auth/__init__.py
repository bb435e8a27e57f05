"""Identity token verification.

Accounts live in an external identity provider. The ledger only verifies
bearer tokens and maps their subject onto the local user mirror.
"""
