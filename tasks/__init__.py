"""tasks/ -- Task records and their persistence.

Layer rule: tasks/ imports only stdlib, third-party libraries, and core/.
Ownership decisions live in auth/ownership.py; this package stores owner ids
but never decides who may see a task.
"""
