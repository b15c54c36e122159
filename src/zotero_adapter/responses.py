"""
Classified API results and the errors raised for failed requests

Every successful request yields one ApiResponse subclass whose ``kind``
attribute identifies the shape of the result. Failed requests raise an
ErrorResponse subclass carrying the raw response and the configuration that
produced it.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

import requests
from requests.utils import parse_header_links

from .request_config import RequestConfig

logger = logging.getLogger(__name__)


class ResultKind(Enum):
    """Discriminant of the classified result union"""
    SINGLE_READ = "single_read"
    MULTI_READ = "multi_read"
    SCHEMA = "schema"
    GENERIC = "generic"
    SINGLE_WRITE = "single_write"
    MULTI_WRITE = "multi_write"
    DELETE = "delete"
    FILE_UPLOAD = "file_upload"
    FILE_DOWNLOAD = "file_download"
    FILE_URL = "file_url"
    RAW = "raw"
    PRETEND = "pretend"
    ERROR = "error"


def parse_version(value: Any) -> Optional[int]:
    """Parse a version header value, None when missing or malformed"""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def header_version(response: Optional[requests.Response]) -> Optional[int]:
    if response is None:
        return None
    return parse_version(response.headers.get('Last-Modified-Version'))


def read_reason(response: Optional[requests.Response]) -> Optional[str]:
    """
    Best-effort read of a failed response's body text

    Returns:
        Body text, or None when it cannot be read
    """
    if response is None:
        return None
    try:
        return response.text
    except (requests.RequestException, UnicodeDecodeError, RuntimeError) as e:
        logger.debug(f"Unable to read error body from response: {e}")
        return None


class ApiResponse:
    """Generic API response: body, originating config and raw response"""

    kind = ResultKind.GENERIC

    def __init__(self, raw: Any, config: RequestConfig, response: Optional[requests.Response]):
        self.raw = raw
        self.config = config
        self.response = response
        self.retry_count = 0

    def get_response_type(self) -> str:
        return type(self).__name__

    def get_data(self) -> Any:
        return self.raw

    def get_links(self) -> Any:
        if isinstance(self.raw, dict):
            return self.raw.get('links')
        return None

    def get_meta(self) -> Any:
        if isinstance(self.raw, dict):
            return self.raw.get('meta')
        return None

    def get_version(self) -> Optional[int]:
        return header_version(self.response)

    def __repr__(self) -> str:
        return f"<{self.get_response_type()} kind={self.kind.value}>"


class SchemaResponse(ApiResponse):
    """Response carrying the global schema; its version comes from the body"""

    kind = ResultKind.SCHEMA

    def get_version(self) -> Optional[int]:
        if isinstance(self.raw, dict):
            return parse_version(self.raw.get('version'))
        return None

    def get_meta(self) -> None:
        return None


class SingleReadResponse(ApiResponse):
    """Response to a GET request returning a single entity"""

    kind = ResultKind.SINGLE_READ

    def get_data(self) -> Any:
        if isinstance(self.raw, dict):
            return self.raw.get('data')
        return None


def _entry_field(entry: Any, name: str) -> Any:
    if isinstance(entry, dict):
        return entry.get(name)
    return None


class MultiReadResponse(ApiResponse):
    """Response to a GET request returning a list of entities"""

    kind = ResultKind.MULTI_READ

    def get_data(self) -> List[Any]:
        return [_entry_field(entry, 'data') for entry in self.raw]

    def get_links(self) -> List[Any]:
        return [_entry_field(entry, 'links') for entry in self.raw]

    def get_meta(self) -> List[Any]:
        return [_entry_field(entry, 'meta') for entry in self.raw]

    def get_total_results(self) -> Optional[int]:
        if self.response is None:
            return None
        return parse_version(self.response.headers.get('Total-Results'))

    def get_rel_links(self) -> Dict[str, str]:
        """
        Pagination links from the Link header, keyed by their rel

        Returns:
            Mapping such as {'next': url, 'last': url}; empty when absent
        """
        if self.response is None:
            return {}
        link_header = self.response.headers.get('Link')
        if not link_header:
            return {}
        return {
            link['rel']: link['url']
            for link in parse_header_links(link_header)
            if 'rel' in link and 'url' in link
        }


class SingleWriteResponse(ApiResponse):
    """Response to a PUT, PATCH or single-entity POST request"""

    kind = ResultKind.SINGLE_WRITE

    def get_data(self) -> Dict[str, Any]:
        """
        The written entity as sent, with the version assigned by the server

        For PUT this is the complete entity, for PATCH only the fields sent.
        """
        body = self.config.body if isinstance(self.config.body, dict) else {}
        return {**body, 'version': self.get_version()}


class MultiWriteResponse(ApiResponse):
    """Response to a POST request writing several entities at once"""

    kind = ResultKind.MULTI_WRITE

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.raw.get(name) if isinstance(self.raw, dict) else None
        return section if isinstance(section, dict) else {}

    def _request_entities(self) -> List[Any]:
        body = self.config.body
        return list(body) if isinstance(body, (list, tuple)) else []

    def _updated_entity(self, index: int, entity: Any) -> Any:
        key = str(index)
        successful = self._section('successful').get(key)
        server_data = _entry_field(successful, 'data') or {}
        base = entity if isinstance(entity, dict) else {}
        return {
            **base,
            **server_data,
            'key': self._section('success')[key],
            'version': self.get_version(),
        }

    def is_success(self) -> bool:
        """Whether every entity in the request was written"""
        return len(self._section('failed')) == 0

    def get_data(self) -> List[Any]:
        """
        All entities from the request, in order. Entities written successfully
        are returned updated, the others unchanged.
        """
        success = self._section('success')
        return [
            self._updated_entity(index, entity) if str(index) in success else entity
            for index, entity in enumerate(self._request_entities())
        ]

    def get_links(self) -> List[Any]:
        successful = self._section('successful')
        return [
            _entry_field(successful.get(str(index)), 'links')
            for index in range(len(self._request_entities()))
        ]

    def get_meta(self) -> List[Any]:
        successful = self._section('successful')
        return [
            _entry_field(successful.get(str(index)), 'meta')
            for index in range(len(self._request_entities()))
        ]

    def get_errors(self) -> Dict[int, Any]:
        return {int(index): error for index, error in self._section('failed').items()}

    def get_entity_by_index(self, index) -> Any:
        """
        Updated entity for a position in the original request

        Raises:
            ValueError: If the write failed for this entity (message carries
                the server's code and reason) or the index is unknown
        """
        index = int(index)
        key = str(index)
        entities = self._request_entities()

        if key in self._section('success'):
            return self._updated_entity(index, entities[index])

        if key in self._section('unchanged'):
            return entities[index]

        failed = self._section('failed')
        if key in failed:
            error = failed[key]
            raise ValueError(f"{error.get('code')}: {error.get('message')}")

        raise ValueError(f"Index {index} is not present in the response")

    def get_entity_by_key(self, key: str) -> Any:
        for index, entity in enumerate(self._request_entities()):
            if isinstance(entity, dict) and entity.get('key') == key:
                return self.get_entity_by_index(index)
        raise ValueError(f"Key {key} is not present in the request")


class DeleteResponse(ApiResponse):
    """Response to a DELETE request"""

    kind = ResultKind.DELETE


class FileUploadResponse(ApiResponse):
    """
    Outcome of a file upload

    Attributes:
        response: authorisation (stage 1) response
        upload_response: transfer (stage 2) response, None when skipped
        register_response: registration (stage 3) response, None when skipped
    """

    kind = ResultKind.FILE_UPLOAD

    def __init__(
        self,
        config: RequestConfig,
        auth_response: Optional[requests.Response],
        upload_response: Optional[requests.Response] = None,
        register_response: Optional[requests.Response] = None,
        exists: bool = False,
    ):
        super().__init__({'exists': exists}, config, auth_response)
        self.upload_response = upload_response
        self.register_response = register_response

    @property
    def exists(self) -> bool:
        return bool(self.raw.get('exists'))

    def get_version(self) -> Optional[int]:
        for response in (self.register_response, self.upload_response, self.response):
            version = header_version(response)
            if version is not None:
                return version
        return None


class FileDownloadResponse(ApiResponse):
    """Binary file contents"""

    kind = ResultKind.FILE_DOWNLOAD


class FileUrlResponse(ApiResponse):
    """Temporary, authorised URL of an attachment file"""

    kind = ResultKind.FILE_URL


class RawApiResponse(ApiResponse):
    """Unclassified response; the raw requests.Response is the data"""

    kind = ResultKind.RAW

    def __init__(self, response: requests.Response, config: RequestConfig):
        super().__init__(response, config, response)


class PretendResponse(ApiResponse):
    """Dry-run result: the URL and fetch parameters that would have been used"""

    kind = ResultKind.PRETEND

    def __init__(self, url: str, fetch_config: Dict[str, Any], config: RequestConfig):
        super().__init__({'url': url, 'fetch_config': fetch_config}, config, None)

    @property
    def url(self) -> str:
        return self.raw['url']

    @property
    def fetch_config(self) -> Dict[str, Any]:
        return self.raw['fetch_config']

    def get_version(self) -> None:
        return None


class ErrorResponse(Exception):
    """
    Raised when the API responds with a non-ok status

    Attributes:
        message: status code and text, prefixed with the upload stage if any
        status: HTTP status code
        status_text: HTTP reason phrase
        reason: body text of the failing response, if it could be read
        response: the failing requests.Response
        config: configuration of the request that failed
    """

    kind = ResultKind.ERROR

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        response: Optional[requests.Response] = None,
        config: Optional[RequestConfig] = None,
    ):
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.response = response
        self.config = config
        self.retry_count = 0
        self.status = response.status_code if response is not None else None
        self.status_text = response.reason if response is not None else None

    def get_response_type(self) -> str:
        return 'ErrorResponse'

    def get_version(self) -> Optional[int]:
        return header_version(self.response)


class TransientServerError(ErrorResponse):
    """408 or 5xx response still failing once the retry budget is spent"""


class ClientRequestError(ErrorResponse):
    """Non-retryable error response (4xx other than 408)"""


class UploadStageError(ErrorResponse):
    """Failure of one stage of the file upload protocol"""

    def __init__(
        self,
        stage: int,
        message: str,
        reason: Optional[str] = None,
        response: Optional[requests.Response] = None,
        config: Optional[RequestConfig] = None,
    ):
        super().__init__(message, reason, response, config)
        self.stage = stage
