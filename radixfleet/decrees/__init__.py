from .base import Decree, Group, Policy
from .sysctl import FileLimit, Sysctl

__all__ = ('Decree', 'FileLimit', 'Group', 'Policy', 'Sysctl')
