"""auth/ -- Authorization package for VetDir.

Authentication happens upstream. A gateway in front of the API evaluates the
caller's roles and forwards the granted capabilities; this package only reads
them and enforces what each route requires.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/, core/, records/, or cache/.
api/ imports from auth/, not the other way around.
"""
