"""
Error taxonomy for the artifact ingestion pipeline.
The HTTP layer maps every ArtifactError to a 400 except RepositoryError.
"""


class ArtifactError(Exception):
    """Base class for ingestion and listing failures"""


class RequestBodyError(ArtifactError):
    """Missing or unreadable request body"""


class JSONParseError(ArtifactError):
    """Malformed JSON payload"""


class DecodeError(ArtifactError):
    """Payload is not valid base64"""


class ImageFormatError(ArtifactError):
    """Decoded bytes are not a valid image of the supported type"""


class StorageError(ArtifactError):
    """Filesystem open or write failure"""


class QueryParamError(ArtifactError):
    """Missing or invalid pagination parameter"""


class RepositoryError(ArtifactError):
    """Metadata repository failed to persist or retrieve records"""
