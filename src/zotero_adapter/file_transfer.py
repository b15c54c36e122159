"""
FileTransfer module driving the multi-stage attachment upload protocol

Full upload:      START -> AUTHORIZE -> EXISTS | TRANSFER -> REGISTER
Patch upload:     START -> AUTHORIZE -> EXISTS | TRANSFER_PATCH
Register only:    START -> AUTHORIZE_OR_FAIL

Stages are issued strictly one after another and are never retried.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

import requests

from .config_loader import ConfigurationError
from .file_hasher import FileHasher
from .http_client import APIRequest, HTTPClient
from .request_config import RequestConfig
from .responses import FileUploadResponse, UploadStageError, read_reason
from .url_builder import make_headers

FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded'

UPLOAD_DESCRIPTOR_FIELDS = ('url', 'contentType', 'prefix', 'suffix', 'uploadKey')


class UploadVariant(Enum):
    FULL = "full"
    PATCH = "patch"
    REGISTER_ONLY = "register_only"


class UploadStage(Enum):
    START = "start"
    AUTHORIZE = "authorize"
    AUTHORIZE_OR_FAIL = "authorize_or_fail"
    EXISTS = "exists"
    TRANSFER = "transfer"
    TRANSFER_PATCH = "transfer_patch"
    REGISTER = "register"


TRANSITIONS = {
    UploadVariant.FULL: {
        UploadStage.START: {UploadStage.AUTHORIZE},
        UploadStage.AUTHORIZE: {UploadStage.EXISTS, UploadStage.TRANSFER},
        UploadStage.TRANSFER: {UploadStage.REGISTER},
    },
    UploadVariant.PATCH: {
        UploadStage.START: {UploadStage.AUTHORIZE},
        UploadStage.AUTHORIZE: {UploadStage.EXISTS, UploadStage.TRANSFER_PATCH},
    },
    UploadVariant.REGISTER_ONLY: {
        UploadStage.START: {UploadStage.AUTHORIZE_OR_FAIL},
    },
}


@dataclass
class UploadSession:
    """State of one upload call, discarded when the call returns"""
    variant: UploadVariant
    file_name: str
    md5: str
    file_size: int
    mtime: int
    stage: UploadStage = UploadStage.START
    upload_key: Optional[str] = None
    upload_url: Optional[str] = None
    upload_content_type: Optional[str] = None
    prefix: str = ''
    suffix: str = ''

    def advance(self, stage: UploadStage) -> None:
        allowed = TRANSITIONS[self.variant].get(self.stage, set())
        if stage not in allowed:
            raise RuntimeError(
                f"Invalid upload transition {self.stage.value} -> {stage.value} "
                f"for {self.variant.value} upload"
            )
        self.stage = stage

    def authorisation_body(self) -> str:
        return urlencode(
            {
                'md5': self.md5,
                'filename': self.file_name,
                'filesize': self.file_size,
                'mtime': self.mtime,
            },
            quote_via=quote,
        )


def string_to_bytes(text: str) -> bytes:
    """Map each character to a single byte, clamping code points above 255"""
    return bytes(min(ord(char), 0xFF) for char in text)


class FileTransfer:
    """Runs the authorise / transfer / register sequence for a single upload"""

    def __init__(self, http_client: HTTPClient):
        self.http_client = http_client
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def select_variant(config: RequestConfig) -> UploadVariant:
        if config.upload_register_only:
            return UploadVariant.REGISTER_ONLY
        if config.file_patch is not None:
            return UploadVariant.PATCH
        return UploadVariant.FULL

    @staticmethod
    def validate(config: RequestConfig) -> None:
        """
        Check an upload configuration before any network call

        Raises:
            ConfigurationError: If the configuration cannot describe an upload
        """
        if config.body is not None and config.file is not None:
            raise ConfigurationError('Cannot use both "file" and "body" in a single request.')

        if not config.file_name:
            raise ConfigurationError('File upload requires "file_name".')

        variant = FileTransfer.select_variant(config)
        if variant is UploadVariant.REGISTER_ONLY:
            if not config.md5sum or config.file_size is None:
                raise ConfigurationError('Registering an upload requires "md5sum" and "file_size".')
            return

        if config.file is None:
            raise ConfigurationError('File upload requires "file".')

        if variant is UploadVariant.PATCH:
            if not config.algorithm:
                raise ConfigurationError('Patch upload requires "algorithm".')
            if not config.md5sum:
                raise ConfigurationError('Patch upload requires "md5sum" of the file being patched.')

    def start_session(self, config: RequestConfig) -> UploadSession:
        variant = self.select_variant(config)
        mtime = config.mtime if config.mtime is not None else int(time.time() * 1000)

        if variant is UploadVariant.REGISTER_ONLY:
            return UploadSession(
                variant=variant,
                file_name=config.file_name,
                md5=config.md5sum,
                file_size=int(config.file_size),
                mtime=mtime,
            )

        return UploadSession(
            variant=variant,
            file_name=config.file_name,
            md5=FileHasher.generate_content_hash(config.file),
            file_size=len(config.file),
            mtime=mtime,
        )

    @staticmethod
    def authorisation_headers(config: RequestConfig, session: UploadSession) -> Dict[str, str]:
        """Request headers plus the precondition matching the upload kind"""
        headers = make_headers(config)
        headers['Content-Type'] = FORM_CONTENT_TYPE
        headers.pop('If-Match', None)
        headers.pop('If-None-Match', None)

        if session.variant is not UploadVariant.REGISTER_ONLY and config.md5sum:
            headers['If-Match'] = config.md5sum
        else:
            headers['If-None-Match'] = '*'
        return headers

    def _stage_error(
        self,
        stage: int,
        response: requests.Response,
        config: RequestConfig,
        reason: Optional[str] = None,
    ) -> UploadStageError:
        if reason is None:
            reason = read_reason(response)
        message = f"Upload stage {stage}: {response.status_code}: {response.reason}"
        self.logger.error(f"{message} ({reason})")
        return UploadStageError(stage, message, reason, response, config)

    @staticmethod
    def _parse_json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    async def upload(self, config: RequestConfig, url: str) -> FileUploadResponse:
        """
        Upload, patch or register an attachment file

        Args:
            config: Upload configuration (file, file_name, md5sum, ...)
            url: Resolved URL of the item's file endpoint

        Returns:
            FileUploadResponse; get_data()['exists'] tells whether the server
            already had the file

        Raises:
            ConfigurationError: If the configuration does not describe an upload
            UploadStageError: If any stage fails
        """
        self.validate(config)
        session = self.start_session(config)
        headers = self.authorisation_headers(config, session)

        if session.variant is UploadVariant.REGISTER_ONLY:
            session.advance(UploadStage.AUTHORIZE_OR_FAIL)
        else:
            session.advance(UploadStage.AUTHORIZE)

        self.logger.info(
            f"Upload stage 1 ({session.variant.value}): authorising {session.file_name} "
            f"({session.file_size} bytes, md5 {session.md5})"
        )
        auth_response = await self.http_client.send(APIRequest(
            url=url,
            method='POST',
            headers=headers,
            body=session.authorisation_body(),
            signal=config.signal,
        ))

        if not 200 <= auth_response.status_code < 300:
            raise self._stage_error(1, auth_response, config)

        auth_data = self._parse_json(auth_response)
        exists = isinstance(auth_data, dict) and bool(auth_data.get('exists'))

        if session.variant is UploadVariant.REGISTER_ONLY:
            if not exists:
                raise self._stage_error(
                    1, auth_response, config,
                    reason='Server did not recognise the file metadata supplied for registration',
                )
            self.logger.info(f"Registered existing upload for {session.file_name}")
            return FileUploadResponse(config, auth_response, exists=True)

        if exists:
            session.advance(UploadStage.EXISTS)
            self.logger.info(f"File {session.file_name} already exists, skipping transfer")
            return FileUploadResponse(config, auth_response, exists=True)

        missing = [
            name for name in UPLOAD_DESCRIPTOR_FIELDS
            if not isinstance(auth_data, dict) or name not in auth_data
        ]
        if session.variant is UploadVariant.PATCH:
            missing = [name for name in missing if name == 'uploadKey']
        if missing:
            raise self._stage_error(
                1, auth_response, config,
                reason=f"Upload authorisation response is missing: {', '.join(missing)}",
            )

        session.upload_key = auth_data['uploadKey']
        session.upload_url = auth_data.get('url')
        session.upload_content_type = auth_data.get('contentType')
        session.prefix = auth_data.get('prefix') or ''
        session.suffix = auth_data.get('suffix') or ''

        if session.variant is UploadVariant.PATCH:
            return await self._transfer_patch(config, session, url, headers, auth_response)
        return await self._transfer_and_register(config, session, url, headers, auth_response)

    async def _transfer_patch(
        self,
        config: RequestConfig,
        session: UploadSession,
        url: str,
        headers: Dict[str, str],
        auth_response: requests.Response,
    ) -> FileUploadResponse:
        session.advance(UploadStage.TRANSFER_PATCH)

        patch_headers = {name: value for name, value in headers.items() if name != 'Content-Type'}
        query = urlencode({'algorithm': config.algorithm, 'upload': session.upload_key}, quote_via=quote)
        patch_url = f"{url}{'&' if '?' in url else '?'}{query}"

        self.logger.info(
            f"Upload stage 2 (patch): sending {len(config.file_patch)} byte "
            f"{config.algorithm} patch for {session.file_name}"
        )
        patch_response = await self.http_client.send(APIRequest(
            url=patch_url,
            method='PATCH',
            headers=patch_headers,
            body=bytes(config.file_patch),
            signal=config.signal,
        ))

        if patch_response.status_code != 204:
            raise self._stage_error(2, patch_response, config)

        return FileUploadResponse(config, auth_response, upload_response=patch_response)

    async def _transfer_and_register(
        self,
        config: RequestConfig,
        session: UploadSession,
        url: str,
        headers: Dict[str, str],
        auth_response: requests.Response,
    ) -> FileUploadResponse:
        session.advance(UploadStage.TRANSFER)

        payload = string_to_bytes(session.prefix) + bytes(config.file) + string_to_bytes(session.suffix)
        self.logger.info(f"Upload stage 2: sending {len(payload)} bytes to storage")
        upload_response = await self.http_client.send(APIRequest(
            url=session.upload_url,
            method='POST',
            headers={'Content-Type': session.upload_content_type},
            body=payload,
            signal=config.signal,
        ))

        if upload_response.status_code != 201:
            raise self._stage_error(2, upload_response, config)

        session.advance(UploadStage.REGISTER)
        self.logger.info(f"Upload stage 3: registering upload of {session.file_name}")
        register_response = await self.http_client.send(APIRequest(
            url=url,
            method='POST',
            headers=headers,
            body=urlencode({'upload': session.upload_key}, quote_via=quote),
            signal=config.signal,
        ))

        if not 200 <= register_response.status_code < 300:
            raise self._stage_error(3, register_response, config)

        return FileUploadResponse(
            config,
            auth_response,
            upload_response=upload_response,
            register_response=register_response,
        )
