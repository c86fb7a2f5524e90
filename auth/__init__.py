"""auth/ -- Authentication and authorization package for the Task Manager API.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or tasks/ at runtime (tasks.models is referenced
for type checking only). api/ imports from auth/, not the other way around.
"""
