"""auth/ -- Session tokens, credential checks and request gates for shopgate.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, web/, or catalog/.
api/ and web/ import from auth/, not the other way around.
"""
