"""
Request engine for the Zotero Web API
Assembles requests from immutable configurations, retries transient failures,
classifies responses and drives the attachment upload protocol
"""

from .config_loader import ConfigLoader, ConfigurationError, EngineSettings, EnvironmentError
from .request_config import (
    RequestConfig,
    ResourceDescriptor,
    ResourceSlot,
    SlotState,
    resolve_version,
    with_patch,
)
from .url_builder import make_headers, make_url, make_url_path, make_url_query
from .file_hasher import FileHasher
from .http_client import APIRequest, DispatchResult, HTTPClient, RequestCancelledError
from .responses import (
    ApiResponse,
    ClientRequestError,
    DeleteResponse,
    ErrorResponse,
    FileDownloadResponse,
    FileUploadResponse,
    FileUrlResponse,
    MultiReadResponse,
    MultiWriteResponse,
    PretendResponse,
    RawApiResponse,
    ResultKind,
    SchemaResponse,
    SingleReadResponse,
    SingleWriteResponse,
    TransientServerError,
    UploadStageError,
)
from .response_classifier import ResponseClassifier
from .file_transfer import FileTransfer, UploadSession, UploadStage, UploadVariant
from .request_engine import RequestEngine
from .api import ZoteroApi, api

__all__ = [
    'ConfigLoader',
    'ConfigurationError',
    'EngineSettings',
    'EnvironmentError',
    'RequestConfig',
    'ResourceDescriptor',
    'ResourceSlot',
    'SlotState',
    'resolve_version',
    'with_patch',
    'make_headers',
    'make_url',
    'make_url_path',
    'make_url_query',
    'FileHasher',
    'APIRequest',
    'DispatchResult',
    'HTTPClient',
    'RequestCancelledError',
    'ApiResponse',
    'ClientRequestError',
    'DeleteResponse',
    'ErrorResponse',
    'FileDownloadResponse',
    'FileUploadResponse',
    'FileUrlResponse',
    'MultiReadResponse',
    'MultiWriteResponse',
    'PretendResponse',
    'RawApiResponse',
    'ResultKind',
    'SchemaResponse',
    'SingleReadResponse',
    'SingleWriteResponse',
    'TransientServerError',
    'UploadStageError',
    'ResponseClassifier',
    'FileTransfer',
    'UploadSession',
    'UploadStage',
    'UploadVariant',
    'RequestEngine',
    'ZoteroApi',
    'api',
]
