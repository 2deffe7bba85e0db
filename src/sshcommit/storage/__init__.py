"""
sshcommit - Storage Module

Backends that persist signed commit objects and update references.
"""

from .object_writer import DulwichObjectWriter, InMemoryObjectWriter, ObjectWriter

__all__ = ['ObjectWriter', 'InMemoryObjectWriter', 'DulwichObjectWriter']
