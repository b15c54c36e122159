"""
RequestEngine module: turns a request configuration into a classified result
"""
import json
import logging
from typing import Any, Optional, Union

from .config_loader import ConfigurationError, EngineSettings
from .file_transfer import FileTransfer
from .http_client import APIRequest, HTTPClient
from .request_config import RequestConfig, resolve_version
from .response_classifier import ResponseClassifier
from .responses import ApiResponse, ErrorResponse, PretendResponse
from .url_builder import make_headers, make_url

NO_FOLLOW_REDIRECTS = frozenset({'manual', 'error'})


class RequestEngine:
    """
    Executes API requests

    Builds URL and headers from a RequestConfig, short-circuits pretend
    (dry-run) requests, hands uploads to FileTransfer and everything else to
    the HTTPClient, then classifies the outcome.
    """

    def __init__(
        self,
        http_client: Optional[HTTPClient] = None,
        response_classifier: Optional[ResponseClassifier] = None,
        file_transfer: Optional[FileTransfer] = None,
        settings: Optional[EngineSettings] = None,
    ):
        """
        Initialise RequestEngine with dependency injection

        Args:
            http_client: HTTP communication component
            response_classifier: Result classification component
            file_transfer: Upload protocol component
            settings: Endpoint and retry defaults for configs built by callers
        """
        self.http_client = http_client or HTTPClient()
        self.response_classifier = response_classifier or ResponseClassifier()
        self.file_transfer = file_transfer or FileTransfer(self.http_client)
        self.settings = settings or EngineSettings()
        self.logger = logging.getLogger(__name__)

    def base_config(self) -> RequestConfig:
        return self.settings.to_request_config()

    @staticmethod
    def validate(config: RequestConfig) -> None:
        """
        Reject impossible configurations before any network call

        Raises:
            ConfigurationError: If the configuration is contradictory
        """
        if config.has_defined('body') and config.has_defined('file'):
            raise ConfigurationError('Cannot use both "file" and "body" in a single request.')
        if config.is_upload:
            FileTransfer.validate(config)

    @staticmethod
    def serialise_body(body: Any) -> Optional[Union[str, bytes]]:
        if body is None or isinstance(body, (str, bytes)):
            return body
        return json.dumps(body)

    def build_request(self, config: RequestConfig) -> APIRequest:
        """
        Assemble the request the configuration describes

        For uploads this is the stage 1 (authorisation) request.
        """
        url = make_url(config)
        allow_redirects = config.redirect not in NO_FOLLOW_REDIRECTS

        if config.is_upload:
            session = self.file_transfer.start_session(config)
            return APIRequest(
                url=url,
                method='POST',
                headers=self.file_transfer.authorisation_headers(config, session),
                body=session.authorisation_body(),
                allow_redirects=allow_redirects,
                signal=config.signal,
            )

        return APIRequest(
            url=url,
            method=config.http_method,
            headers=make_headers(config),
            body=self.serialise_body(config.body),
            allow_redirects=allow_redirects,
            signal=config.signal,
        )

    async def execute(self, config: Union[RequestConfig, ApiResponse]) -> ApiResponse:
        """
        Execute a request and classify its result

        Args:
            config: Request configuration; a result produced earlier in a
                chain of executors is passed through unchanged

        Returns:
            ApiResponse subclass; see ResultKind for the possible kinds

        Raises:
            ConfigurationError: If the configuration is invalid
            ErrorResponse: If the API responds with an error status
            RequestCancelledError: If the caller's signal is set
        """
        if isinstance(config, ApiResponse):
            return config

        config = resolve_version(config)
        self.validate(config)
        request = self.build_request(config)

        if config.pretend:
            self.logger.debug(f"Pretend {request.method} {request.url}")
            return PretendResponse(request.url, request.to_fetch_config(), config)

        if config.is_upload:
            return await self.file_transfer.upload(config, request.url)

        result = await self.http_client.dispatch(request, config.retry, config.retry_delay)
        try:
            response = self.response_classifier.classify(config, result.response)
        except ErrorResponse as e:
            e.retry_count = result.retry_count
            raise

        response.retry_count = result.retry_count
        self.logger.debug(
            f"{request.method} {request.url} classified as {response.get_response_type()} "
            f"after {result.retry_count} retries"
        )
        return response

    def close_connection(self) -> None:
        self.http_client.close_connection()

    async def __aenter__(self) -> "RequestEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close_connection()
