"""
ResponseClassifier module for turning raw HTTP responses into typed results
"""

import logging
from typing import Any

import requests

from .http_client import HTTPClient
from .request_config import RequestConfig
from .responses import (
    ApiResponse,
    ClientRequestError,
    DeleteResponse,
    FileDownloadResponse,
    FileUrlResponse,
    MultiReadResponse,
    MultiWriteResponse,
    RawApiResponse,
    SchemaResponse,
    SingleReadResponse,
    SingleWriteResponse,
    TransientServerError,
    read_reason,
)

WRITE_RESULT_SECTIONS = ('success', 'failed', 'unchanged')


class ResponseClassifier:
    """Picks the result kind for a terminal, non-upload response"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def is_ok(status_code: int) -> bool:
        return 200 <= status_code < 400

    def raise_for_status(self, config: RequestConfig, response: requests.Response) -> None:
        """
        Raise a classified error for statuses outside [200, 400)

        Raises:
            TransientServerError: For 408 and 5xx responses
            ClientRequestError: For every other failing status
        """
        if self.is_ok(response.status_code):
            return

        reason = read_reason(response)
        message = f"{response.status_code}: {response.reason}"
        error_class = TransientServerError if HTTPClient.is_transient(response.status_code) else ClientRequestError
        self.logger.debug(f"Request failed with {message}")
        raise error_class(message, reason, response, config)

    @staticmethod
    def parse_json(response: requests.Response) -> Any:
        """Parsed JSON body, None when the body is empty or not JSON"""
        try:
            return response.json()
        except ValueError:
            return None

    def classify(self, config: RequestConfig, response: requests.Response) -> ApiResponse:
        """
        Classify a terminal response

        Args:
            config: Configuration the request was issued with
            response: Terminal response returned by the dispatcher

        Returns:
            ApiResponse subclass matching method, resource and body shape

        Raises:
            ErrorResponse: If the status is outside [200, 400)
        """
        self.raise_for_status(config, response)

        method = config.http_method
        resource = config.resource

        if config.format != 'json':
            if resource.has('file') and method == 'GET':
                return FileDownloadResponse(response.content, config, response)
            if resource.has('file_url') and method == 'GET':
                return FileUrlResponse(response.text.rstrip('\n'), config, response)
            return RawApiResponse(response, config)

        content = self.parse_json(response)

        if method in ('POST', 'PUT', 'PATCH'):
            if isinstance(content, dict) and any(name in content for name in WRITE_RESULT_SECTIONS):
                return MultiWriteResponse(content, config, response)
            return SingleWriteResponse(content, config, response)

        if method == 'DELETE':
            return DeleteResponse(content, config, response)

        if resource.has('library'):
            if isinstance(content, list):
                return MultiReadResponse(content, config, response)
            return SingleReadResponse(content, config, response)

        if resource.has('schema'):
            return SchemaResponse(content, config, response)

        return ApiResponse(content, config, response)
