"""comments/ -- Comment threads: storage, thread assembly, and mutation policy.

Layer rule: comments/ imports only stdlib, third-party libraries, core/, and
auth.models. It does NOT import from api/.
"""
