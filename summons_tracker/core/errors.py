from __future__ import annotations


class AppError(Exception):
    pass


class BusinessError(AppError):
    pass


class ValidationError(BusinessError):
    pass


class RecordNotFoundError(BusinessError):
    def __init__(self, record_type: str, record_id: str) -> None:
        super().__init__(f"{record_type} {record_id} not found locally")
        self.record_type = record_type
        self.record_id = record_id


class InfraError(AppError):
    pass


class PersistenceError(InfraError):
    pass


class IdentifierMigrationError(PersistenceError):
    """The local rename old_id -> new_id was rolled back."""

    def __init__(self, record_type: str, old_id: str, new_id: str, reason: str) -> None:
        super().__init__(f"Could not migrate {record_type} {old_id} -> {new_id}: {reason}")
        self.record_type = record_type
        self.old_id = old_id
        self.new_id = new_id


class RecordBusyError(PersistenceError):
    pass


class ExternalServiceError(InfraError):
    pass


class TransientExternalError(ExternalServiceError):
    pass
