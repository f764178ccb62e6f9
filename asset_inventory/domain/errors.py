from __future__ import annotations


class InventoryError(Exception):
    pass


class NotFoundError(InventoryError):
    pass


class ForbiddenError(InventoryError):
    pass


class ValidationError(InventoryError):
    pass


class ConflictError(InventoryError):
    pass


class ReferentialConflictError(ConflictError):
    pass


class AuthError(InventoryError):
    pass


class StorageError(InventoryError):
    pass


class ExternalServiceError(InventoryError):
    pass
