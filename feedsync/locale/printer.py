"""
Error Localization
==================

Renders feed errors in the user's language before they are stored on the
feed as its last error message.
"""

from typing import Dict

from ..utils.exceptions import FeedSyncError, FeedFetchError, FeedParseError, ErrorCode


DEFAULT_LANGUAGE = "en_US"

CATALOG: Dict[str, Dict[str, str]] = {
    "en_US": {
        "error.timeout": "Website unreachable, the request timed out",
        "error.network": "Website unreachable",
        "error.unauthorized": "You are not authorized to access this resource (invalid username/password)",
        "error.forbidden": "Access to this website is forbidden",
        "error.not_found": "This resource was not found (HTTP 404)",
        "error.http_status": "Unable to fetch this resource (Status Code = {status})",
        "error.too_large": "The resource is too large",
        "error.parse": "Unable to parse this feed",
        "error.unknown": "An unexpected error occurred",
    },
    "fr_FR": {
        "error.timeout": "Site web injoignable, la requête a expiré",
        "error.network": "Site web injoignable",
        "error.unauthorized": "Vous n'êtes pas autorisé à accéder à cette ressource (identifiant/mot de passe invalide)",
        "error.forbidden": "L'accès à ce site web est interdit",
        "error.not_found": "Cette ressource est introuvable (HTTP 404)",
        "error.http_status": "Impossible de récupérer cette ressource (Code HTTP = {status})",
        "error.too_large": "La ressource est trop volumineuse",
        "error.parse": "Impossible d'analyser ce flux",
        "error.unknown": "Une erreur inattendue est survenue",
    },
    "de_DE": {
        "error.timeout": "Webseite nicht erreichbar, die Anfrage hat das Zeitlimit überschritten",
        "error.network": "Webseite nicht erreichbar",
        "error.unauthorized": "Sie sind nicht berechtigt, auf diese Ressource zuzugreifen (Benutzername/Passwort ungültig)",
        "error.forbidden": "Der Zugriff auf diese Webseite ist verboten",
        "error.not_found": "Diese Ressource wurde nicht gefunden (HTTP 404)",
        "error.http_status": "Die Ressource konnte nicht abgerufen werden (Statuscode = {status})",
        "error.too_large": "Die Ressource ist zu groß",
        "error.parse": "Das Abonnement konnte nicht gelesen werden",
        "error.unknown": "Ein unerwarteter Fehler ist aufgetreten",
    },
    "es_ES": {
        "error.timeout": "Sitio web inalcanzable, la solicitud agotó el tiempo de espera",
        "error.network": "Sitio web inalcanzable",
        "error.unauthorized": "No tiene autorización para acceder a este recurso (usuario/contraseña no válidos)",
        "error.forbidden": "El acceso a este sitio web está prohibido",
        "error.not_found": "No se encontró este recurso (HTTP 404)",
        "error.http_status": "No se puede obtener este recurso (Código de estado = {status})",
        "error.too_large": "El recurso es demasiado grande",
        "error.parse": "No se puede analizar esta fuente",
        "error.unknown": "Ocurrió un error inesperado",
    },
}


class Printer:
    """Translates message keys and errors for one language."""

    def __init__(self, language: str = DEFAULT_LANGUAGE):
        self.language = language if language in CATALOG else DEFAULT_LANGUAGE
        self.messages = CATALOG[self.language]

    def printf(self, key: str, **kwargs) -> str:
        template = self.messages.get(key) or CATALOG[DEFAULT_LANGUAGE].get(key, key)
        return template.format(**kwargs) if kwargs else template

    def localize(self, error: Exception) -> str:
        """Render an error as a message in this printer's language.

        Errors without a catalog entry fall back to their user message.
        """
        key = self._message_key(error)
        if key == "error.http_status":
            return self.printf(key, status=error.status_code)
        if key:
            return self.printf(key)
        if isinstance(error, FeedSyncError):
            return error.user_message
        return self.printf("error.unknown")

    @staticmethod
    def _message_key(error: Exception) -> str:
        if isinstance(error, FeedParseError):
            return "error.parse"

        if isinstance(error, FeedFetchError):
            if error.status_code == 401:
                return "error.unauthorized"
            if error.status_code == 403:
                return "error.forbidden"
            if error.status_code == 404:
                return "error.not_found"
            if error.status_code is not None:
                return "error.http_status"
            if error.error_code == ErrorCode.FEED_FETCH_TIMEOUT:
                return "error.timeout"
            if error.error_code == ErrorCode.FEED_TOO_LARGE:
                return "error.too_large"
            return "error.network"

        return ""
