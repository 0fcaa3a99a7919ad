"""
RedBoat Hotel - Errores de Negocio
==================================

Excepciones que lanzan los servicios. La API las traduce a
{"message": ...} con el código HTTP correspondiente (ver api/main.py).
"""


class ServiceError(Exception):
    """Error de negocio con mensaje visible para el usuario."""

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(ServiceError):
    status_code = 400


class Unauthorized(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409
