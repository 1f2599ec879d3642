"""auth/ -- Credential and authorization core for KeyGate.

CredentialService (tokens.py) and PermissionRegistry (registry.py) share no
state. A caller validates a token with the former, then asks the latter
whether the token's role may act.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
