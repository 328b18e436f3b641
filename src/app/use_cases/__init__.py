"""
Use Cases

Organized into domain folders:
- audit/: Audit log queries and security statistics
- sessions/: Session listing and termination

Import from the subpackages.
"""
