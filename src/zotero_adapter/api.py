"""
Fluent front-end for building and executing API requests

Each call returns a new ZoteroApi holding a derived configuration; nothing is
modified in place, so partially configured chains can be shared and reused::

    library = api(key).library('user', 475425)
    response = await library.items().top().get(limit=10)
"""

from typing import Any, Iterable, Optional

from .config_loader import ConfigurationError
from .request_config import RequestConfig, with_patch
from .request_engine import RequestEngine
from .responses import ApiResponse

LIBRARY_TYPES = {
    'user': 'u',
    'group': 'g',
}

# Query field receiving the keys of a DELETE, by targeted resource slot
DELETE_TARGETS = [
    ('items', 'item_key'),
    ('collections', 'collection_key'),
    ('tags', 'tag'),
    ('searches', 'search_key'),
]


class ZoteroApi:
    """Immutable request chain bound to a RequestEngine"""

    def __init__(self, config: Optional[RequestConfig] = None, engine: Optional[RequestEngine] = None):
        self.engine = engine or RequestEngine()
        self.config = config if config is not None else self.engine.base_config()

    def _derive(self, **patch: Any) -> "ZoteroApi":
        return ZoteroApi(with_patch(self.config, patch), self.engine)

    def _resource(self, **slots: Any) -> "ZoteroApi":
        return self._derive(resource=slots)

    def get_config(self) -> RequestConfig:
        return self.config

    def api(self, key: Optional[str] = None, **opts: Any) -> "ZoteroApi":
        if key:
            opts['authorization'] = f"Bearer {key}"
        return self._derive(**opts)

    def library(self, type_or_key: str, library_id: Any = None) -> "ZoteroApi":
        """
        Select a library either as ('user' | 'group', id) or as a prefixed
        key such as 'u475425'

        Raises:
            ConfigurationError: If the library type is not recognised
        """
        if library_id is not None:
            prefix = LIBRARY_TYPES.get(str(type_or_key).lower())
            if prefix is None:
                raise ConfigurationError(f"Unrecognized library type {type_or_key}")
            library_key = f"{prefix}{library_id}"
        else:
            library_key = str(type_or_key)
            if library_key[:1] not in LIBRARY_TYPES.values() or len(library_key) < 2:
                raise ConfigurationError(f"Unrecognized library key {type_or_key}")
        return self._resource(library=library_key)

    def items(self, items: Optional[str] = None) -> "ZoteroApi":
        return self._resource(items=items)

    def collections(self, collections: Optional[str] = None) -> "ZoteroApi":
        return self._resource(collections=collections)

    def subcollections(self) -> "ZoteroApi":
        return self._resource(subcollections=None)

    def publications(self) -> "ZoteroApi":
        return self._resource(publications=None)

    def tags(self, tags: Optional[str] = None) -> "ZoteroApi":
        return self._resource(tags=tags)

    def searches(self, searches: Optional[str] = None) -> "ZoteroApi":
        return self._resource(searches=searches)

    def top(self) -> "ZoteroApi":
        return self._resource(top=None)

    def trash(self) -> "ZoteroApi":
        return self._resource(trash=None)

    def children(self) -> "ZoteroApi":
        return self._resource(children=None)

    def groups(self) -> "ZoteroApi":
        return self._resource(groups=None)

    def settings(self, settings: Optional[str] = None) -> "ZoteroApi":
        return self._resource(settings=settings)

    def deleted(self, since: int) -> "ZoteroApi":
        return self._resource(deleted=None)._derive(since=since)

    def item_types(self) -> "ZoteroApi":
        return self._resource(item_types=None)

    def item_fields(self) -> "ZoteroApi":
        return self._resource(item_fields=None)

    def creator_fields(self) -> "ZoteroApi":
        return self._resource(creator_fields=None)

    def schema(self) -> "ZoteroApi":
        return self._resource(schema=None)

    def item_type_fields(self, item_type: Optional[str] = None) -> "ZoteroApi":
        chain = self._resource(item_type_fields=None)
        return chain._derive(item_type=item_type) if item_type else chain

    def item_type_creator_types(self, item_type: Optional[str] = None) -> "ZoteroApi":
        chain = self._resource(item_type_creator_types=None)
        return chain._derive(item_type=item_type) if item_type else chain

    def template(self, item_type: Optional[str] = None, sub_type: Optional[str] = None) -> "ZoteroApi":
        """Template for a new item; sub_type is the annotation type or attachment link mode"""
        chain = self._resource(template=None)
        if item_type:
            chain = chain._derive(item_type=item_type)
        if sub_type:
            if item_type == 'annotation':
                chain = chain._derive(annotation_type=sub_type)
            else:
                chain = chain._derive(link_mode=sub_type)
        return chain

    def verify_key_access(self) -> "ZoteroApi":
        return self._resource(verify_key_access=None)

    def version(self, version: int) -> "ZoteroApi":
        return self._derive(version=version)

    def attachment(
        self,
        file_name: Optional[str] = None,
        file: Optional[bytes] = None,
        mtime: Optional[int] = None,
        md5sum: Optional[str] = None,
        patch: Optional[bytes] = None,
        algorithm: Optional[str] = None,
    ) -> "ZoteroApi":
        """
        Target an item's attachment file

        Without arguments the chain downloads the file. With file_name and
        file it uploads; md5sum is the hash of the remote file being
        replaced. Passing patch and algorithm uploads a binary diff instead
        of the whole file.
        """
        chain = self._resource(file=None)._derive(format=None)
        if file_name and file is not None:
            chain = chain._derive(
                file_name=file_name,
                file=bytes(file),
                mtime=mtime,
                md5sum=md5sum,
                file_patch=bytes(patch) if patch is not None else None,
                algorithm=algorithm,
                content_type='application/x-www-form-urlencoded',
            )
        return chain

    def register_attachment(self, file_name: str, file_size: int, mtime: int, md5sum: str) -> "ZoteroApi":
        """Register a file the server already stores, without transferring it"""
        return self._resource(file=None)._derive(
            format=None,
            file_name=file_name,
            file_size=file_size,
            mtime=mtime,
            md5sum=md5sum,
            upload_register_only=True,
            content_type='application/x-www-form-urlencoded',
        )

    def attachment_url(self) -> "ZoteroApi":
        return self._resource(file_url=None)._derive(format=None)

    async def _execute(self, **patch: Any) -> ApiResponse:
        return await self.engine.execute(with_patch(self.config, patch))

    async def get(self, **opts: Any) -> ApiResponse:
        return await self._execute(**opts, method='GET')

    async def post(self, data: Any = None, **opts: Any) -> ApiResponse:
        if self.config.is_upload:
            return await self._execute(**opts, method='POST')
        return await self._execute(**opts, body=data, method='POST')

    async def put(self, data: Any, **opts: Any) -> ApiResponse:
        return await self._execute(**opts, body=data, method='PUT')

    async def patch(self, data: Any, **opts: Any) -> ApiResponse:
        return await self._execute(**opts, body=data, method='PATCH')

    def _delete_config(self, keys_to_delete: Optional[Iterable[str]], opts: dict) -> RequestConfig:
        config = with_patch(self.config, {**opts, 'method': 'DELETE'})

        for slot, query_field in DELETE_TARGETS:
            if config.resource.has(slot):
                break
        else:
            raise ConfigurationError('Called delete() without first specifying what to delete.')

        if keys_to_delete:
            existing = getattr(config, query_field) or []
            if isinstance(existing, str):
                existing = [existing]
            config = with_patch(config, {query_field: [*existing, *keys_to_delete]})
        return config

    async def delete(self, keys_to_delete: Optional[Iterable[str]] = None, **opts: Any) -> ApiResponse:
        """
        Delete the targeted entity, or several entities by key

        Raises:
            ConfigurationError: If no items, collections, tags or searches
                were selected
        """
        return await self.engine.execute(self._delete_config(keys_to_delete, opts))

    async def pretend(self, verb: str = 'get', data: Any = None, **opts: Any) -> ApiResponse:
        """Resolve the request the chain would make without sending it"""
        verb = verb.upper()
        if verb == 'DELETE':
            config = self._delete_config(data, {**opts, 'pretend': True})
        elif data is not None:
            config = with_patch(self.config, {**opts, 'body': data, 'method': verb, 'pretend': True})
        else:
            config = with_patch(self.config, {**opts, 'method': verb, 'pretend': True})
        return await self.engine.execute(config)


def api(key: Optional[str] = None, engine: Optional[RequestEngine] = None, **opts: Any) -> ZoteroApi:
    """
    Start a request chain

    Args:
        key: API key, sent as a bearer token
        engine: RequestEngine to execute with; a default one is created if omitted
        **opts: Any RequestConfig field, e.g. api_authority_part or retry

    Returns:
        ZoteroApi
    """
    return ZoteroApi(engine=engine).api(key, **opts)
