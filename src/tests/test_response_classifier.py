"""
Test suite for ResponseClassifier component
Following TDD approach with AAA pattern and descriptive naming
"""

import pytest

from zotero_adapter.request_config import RequestConfig, with_patch
from zotero_adapter.response_classifier import ResponseClassifier
from zotero_adapter.responses import (
    ApiResponse,
    ClientRequestError,
    DeleteResponse,
    ErrorResponse,
    FileDownloadResponse,
    FileUrlResponse,
    MultiReadResponse,
    MultiWriteResponse,
    RawApiResponse,
    ResultKind,
    SchemaResponse,
    SingleReadResponse,
    SingleWriteResponse,
    TransientServerError,
)
from conftest import build_response


def _config(method='GET', **patch):
    resource = patch.pop('resource', {})
    return with_patch(RequestConfig(), {'method': method, 'resource': resource, **patch})


class TestResponseClassifier:
    """Test suite for result classification"""

    def setup_method(self):
        """Set up test fixtures before each test method"""
        self.classifier = ResponseClassifier()

    def test_get_library_items_with_array_body_returns_multi_read(self):
        # Arrange
        body = [{'key': 'A', 'data': {'key': 'A'}}, {'key': 'B', 'data': {'key': 'B'}}]
        config = _config(resource={'library': 'u1', 'items': None})

        # Act
        result = self.classifier.classify(config, build_response(200, json_body=body))

        # Assert
        assert isinstance(result, MultiReadResponse)
        assert result.kind is ResultKind.MULTI_READ
        assert len(result.get_data()) == 2
        assert result.get_data() == [{'key': 'A'}, {'key': 'B'}]

    def test_get_single_item_with_object_body_returns_single_read(self):
        # Arrange
        body = {'key': 'X', 'data': {'key': 'X', 'title': 'Foo'}, 'links': {'self': {}}}
        config = _config(resource={'library': 'u1', 'items': 'X'})

        # Act
        result = self.classifier.classify(config, build_response(200, json_body=body))

        # Assert
        assert isinstance(result, SingleReadResponse)
        assert result.get_data() == body['data']
        assert result.get_links() == {'self': {}}

    def test_304_on_read_returns_non_error_result_with_null_data(self):
        # Arrange
        config = _config(resource={'library': 'u1', 'items': 'X'}, if_modified_since_version=5)

        # Act
        result = self.classifier.classify(config, build_response(304))

        # Assert
        assert isinstance(result, SingleReadResponse)
        assert result.get_data() is None

    def test_get_schema_returns_schema_with_body_version(self):
        # Arrange
        config = _config(resource={'schema': None})
        response = build_response(200, json_body={'version': 29, 'itemTypes': []},
                                  headers={'Last-Modified-Version': '1'})

        # Act
        result = self.classifier.classify(config, response)

        # Assert
        assert isinstance(result, SchemaResponse)
        assert result.get_version() == 29
        assert result.get_meta() is None

    def test_get_without_library_returns_generic(self):
        # Arrange
        config = _config(resource={'item_types': None})

        # Act
        result = self.classifier.classify(config, build_response(200, json_body=[{'itemType': 'book'}]))

        # Assert
        assert type(result) is ApiResponse
        assert result.kind is ResultKind.GENERIC
        assert result.get_data() == [{'itemType': 'book'}]

    def test_get_with_unparseable_json_body_sets_null(self):
        # Arrange
        config = _config(resource={'library': 'u1', 'items': 'X'})

        # Act
        result = self.classifier.classify(config, build_response(200, text='not json'))

        # Assert
        assert isinstance(result, SingleReadResponse)
        assert result.raw is None

    def test_post_with_write_report_returns_multi_write(self):
        # Arrange
        config = _config('POST', resource={'library': 'u1', 'items': None}, body=[{'title': 'a'}])
        body = {'success': {'0': 'AAAA1111'}, 'unchanged': {}, 'failed': {}}

        # Act
        result = self.classifier.classify(config, build_response(200, json_body=body))

        # Assert
        assert isinstance(result, MultiWriteResponse)
        assert result.is_success()

    @pytest.mark.parametrize('method', ['PUT', 'PATCH'])
    def test_put_and_patch_return_single_write_with_header_version(self, method):
        # Arrange
        config = _config(method, resource={'library': 'u1', 'items': 'X'},
                         body={'key': 'X', 'version': 41, 'title': 'Foo'})
        response = build_response(204, headers={'Last-Modified-Version': '42'})

        # Act
        result = self.classifier.classify(config, response)

        # Assert
        assert isinstance(result, SingleWriteResponse)
        assert result.get_data() == {'key': 'X', 'version': 42, 'title': 'Foo'}

    def test_delete_returns_delete_response(self):
        # Arrange
        config = _config('DELETE', resource={'library': 'u1', 'items': 'X'})

        # Act
        result = self.classifier.classify(config, build_response(204))

        # Assert
        assert isinstance(result, DeleteResponse)
        assert result.kind is ResultKind.DELETE

    def test_non_json_file_get_returns_file_download_bytes(self):
        # Arrange
        config = _config(resource={'library': 'u1', 'items': 'X', 'file': None}, format=None)

        # Act
        result = self.classifier.classify(config, build_response(200, content=b'lorem ipsum'))

        # Assert
        assert isinstance(result, FileDownloadResponse)
        assert result.get_data() == b'lorem ipsum'

    def test_non_json_file_url_get_returns_trimmed_text(self):
        # Arrange
        config = _config(resource={'library': 'u1', 'items': 'X', 'file_url': None}, format=None)

        # Act
        result = self.classifier.classify(
            config, build_response(200, text='https://files.zotero.org/some-file\n')
        )

        # Assert
        assert isinstance(result, FileUrlResponse)
        assert result.get_data() == 'https://files.zotero.org/some-file'

    def test_non_json_other_request_returns_raw_passthrough(self):
        # Arrange
        config = _config(resource={'library': 'u1', 'items': None}, format='bibtex')
        response = build_response(200, text='@book{...}')

        # Act
        result = self.classifier.classify(config, response)

        # Assert
        assert isinstance(result, RawApiResponse)
        assert result.get_data() is response

    def test_404_raises_client_request_error_with_reason(self):
        # Arrange
        config = _config(resource={'library': 'u1', 'items': 'X'})

        # Act & Assert
        with pytest.raises(ClientRequestError) as exc_info:
            self.classifier.classify(config, build_response(404, text='Item not found'))

        error = exc_info.value
        assert error.message == '404: Not Found'
        assert error.status == 404
        assert error.status_text == 'Not Found'
        assert error.reason == 'Item not found'
        assert error.config is config
        assert error.response.status_code == 404
        assert error.kind is ResultKind.ERROR

    def test_503_raises_transient_server_error(self):
        # Arrange
        config = _config(resource={'library': 'u1', 'items': None})

        # Act & Assert
        with pytest.raises(TransientServerError) as exc_info:
            self.classifier.classify(config, build_response(503, text='Down for maintenance'))

        assert isinstance(exc_info.value, ErrorResponse)
        assert exc_info.value.message == '503: Service Unavailable'

    def test_412_on_write_carries_version_from_error_response(self):
        # Arrange
        config = _config('PUT', resource={'library': 'u1', 'items': 'X'}, body={})
        response = build_response(
            412,
            text='Item has been modified since specified version (expected 42, found 41)',
            headers={'Last-Modified-Version': '41'},
        )

        # Act & Assert
        with pytest.raises(ClientRequestError) as exc_info:
            self.classifier.classify(config, response)

        assert exc_info.value.message == '412: Precondition Failed'
        assert exc_info.value.get_version() == 41
