"""
Build Server module.

Serves a read-only HTTP view of jobs and builds from the controller's store.
"""
