# errors.py
"""
Excepciones del bot de órdenes diferidas.

Ninguna es fatal para el proceso: los flows las convierten en re-prompts y
los sweeps las registran y siguen con el siguiente usuario.
"""


class BotError(Exception):
    """Base de todas las excepciones propias."""


class ValidationError(BotError):
    """Respuesta del usuario inválida para el paso actual del flow."""


class WalletImportError(ValidationError):
    """La clave o mnemonic no se pudo importar."""


class OracleUnavailable(BotError):
    """El proveedor de precios falló o no conoce el token."""


class PersistenceError(BotError):
    """Fallo leyendo o escribiendo una colección del store."""


class InvalidTransition(BotError):
    """Cambio de estado no permitido para una orden o DCA."""
