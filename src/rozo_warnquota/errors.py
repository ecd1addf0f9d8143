from __future__ import annotations


class WarnQuotaError(Exception):
    pass


class ConfigError(WarnQuotaError):
    pass


class ValidationError(ConfigError):
    pass


class ExportNotFoundError(WarnQuotaError):
    pass


class ResolutionError(WarnQuotaError):
    pass


class DirectoryError(WarnQuotaError):
    pass


class DeliveryError(WarnQuotaError):
    pass


class TransportError(WarnQuotaError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
