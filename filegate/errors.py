"""Error taxonomy for the gateway.

Every error carries the HTTP status it maps to and a short, user-visible
message. Routes decide whether the message goes out as plain text or JSON.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for all expected gateway failures."""

    status_code = 500
    message = "Interner Serverfehler"

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


# 404
class NotFound(GatewayError):
    status_code = 404
    message = "Nicht gefunden"


class FileNotFound(NotFound):
    message = "Datei nicht gefunden"


class FolderNotFound(NotFound):
    message = "Ordner nicht gefunden"


class GalleryNotFound(NotFound):
    message = "Galerie nicht gefunden"


class NoDeliverableUrl(NotFound):
    message = "Keine gültige URL für die Datei gefunden"


# 400
class ValidationError(GatewayError):
    status_code = 400
    message = "Ungültige Anfrage"


class MissingIdentifiers(ValidationError):
    message = "Ordner-ID oder Dateiname fehlt"


class NoFilePayload(ValidationError):
    message = "Keine Datei gefunden"


class PayloadTooLarge(ValidationError):
    status_code = 413
    message = "Datei ist zu groß"


# 401 / 403
class AuthError(GatewayError):
    status_code = 401
    message = "Nicht autorisiert"


class MissingApiKey(AuthError):
    message = "API-Schlüssel fehlt"


class InvalidApiKey(AuthError):
    message = "Ungültiger API-Schlüssel"


class InvalidPassword(AuthError):
    message = "Ungültiges Passwort"


class ShareDisabled(AuthError):
    status_code = 403
    message = "Dieser Share-Link ist deaktiviert"


class ShareExpired(AuthError):
    status_code = 403
    message = "Dieser Share-Link ist abgelaufen"


# 5xx
class UpstreamError(GatewayError):
    status_code = 500
    message = "Fehler beim Laden der Datei"


class UpstreamFetchFailed(UpstreamError):
    """Upstream answered with a non-success status; that status is kept for relaying."""

    def __init__(self, upstream_status: int, message: Optional[str] = None) -> None:
        self.upstream_status = upstream_status
        super().__init__(message or f"Failed to fetch file: {upstream_status}")


class BlobWriteFailed(UpstreamError):
    message = "Datei konnte nicht gespeichert werden"


class BlobExists(BlobWriteFailed):
    """An object already occupies the path; blobs are never overwritten."""

    message = "Datei existiert bereits"


class StoreError(UpstreamError):
    """The metadata store could not be reached or rejected the operation."""

    message = "Interner Serverfehler"


class PartialWriteError(GatewayError):
    status_code = 500
    message = "Datei gespeichert, Metadaten fehlgeschlagen"


class MetadataWriteFailed(PartialWriteError):
    """Phase 2 of an upload failed; the saga still points at the orphaned blob."""

    def __init__(self, saga, message: Optional[str] = None) -> None:
        self.saga = saga
        super().__init__(message)
