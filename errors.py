"""
=============================================================================
ERRORS.PY — Errores del Dominio
=============================================================================
La lógica (gamification.py) no sabe nada de HTTP. Cuando algo falla lanza
uno de estos errores, y main.py los convierte en la respuesta adecuada:

  NotFoundError → 404  {"detail": "..."}
  ConflictError → 409  {"detail": "..."}
"""


class MotivatorError(Exception):
    """Base de todos los errores del dominio"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(MotivatorError):
    """El registro no existe (o no pertenece al usuario)"""
    status_code = 404


class ConflictError(MotivatorError):
    """Otra petición modificó el mismo registro a la vez"""
    status_code = 409
