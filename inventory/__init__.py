"""inventory/ -- Stock-keeping collaborators protected by the auth core.

Layer rule: inventory/ imports only core/ and third-party libraries.
It does NOT import from api/, web/, or auth/. Permission checks happen in the
API layer before any inventory call is made.
"""
