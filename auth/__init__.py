"""auth/ -- Credential store, token service, edge guard and permission matrix for Stockify.

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/, web/, or inventory/.
api/ and web/ import from auth/, not the other way around.
"""
