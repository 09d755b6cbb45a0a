from __future__ import annotations


class ProvisionError(RuntimeError):
    """Base class for every failure an installer operation reports."""


class UnsupportedSystem(ProvisionError):
    pass


class PermissionDenied(ProvisionError):
    pass
