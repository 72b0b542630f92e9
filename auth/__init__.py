"""auth/ -- Authentication package for the Konfetka shop API.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/; configuration values are passed in by
the caller. api/ imports from auth/, not the other way around.
"""
