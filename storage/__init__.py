"""storage

Collaborators of the core: local snapshot store and remote profile stores.
"""
