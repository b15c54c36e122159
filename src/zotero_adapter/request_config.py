"""
Immutable request configuration: resource descriptors, request fields and
the pure helpers used to derive new configurations from existing ones
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .config_loader import ConfigurationError


class SlotState(Enum):
    """Presence of a single resource slot in a descriptor"""
    ABSENT = "absent"
    GENERIC = "generic"
    KEYED = "keyed"


@dataclass(frozen=True)
class ResourceSlot:
    """One named part of a resource path, optionally carrying an id"""
    state: SlotState = SlotState.ABSENT
    key: Optional[str] = None

    def __post_init__(self):
        if self.state is SlotState.KEYED and not self.key:
            raise ConfigurationError("A keyed resource slot requires a non-empty key")
        if self.state is not SlotState.KEYED and self.key is not None:
            raise ConfigurationError(f"A {self.state.value} resource slot cannot carry a key")

    @classmethod
    def absent(cls) -> "ResourceSlot":
        return cls(SlotState.ABSENT)

    @classmethod
    def generic(cls) -> "ResourceSlot":
        return cls(SlotState.GENERIC)

    @classmethod
    def keyed(cls, key: str) -> "ResourceSlot":
        return cls(SlotState.KEYED, str(key))

    @classmethod
    def from_value(cls, value: Union["ResourceSlot", str, None]) -> "ResourceSlot":
        """
        Coerce a shorthand value into a slot

        None (or an empty string) selects the generic form, a string selects
        the keyed form and a ResourceSlot is returned as is.
        """
        if isinstance(value, ResourceSlot):
            return value
        if value is None or value == "":
            return cls.generic()
        return cls.keyed(value)

    @property
    def is_present(self) -> bool:
        return self.state is not SlotState.ABSENT


# Canonical slot order with the URL segment each slot renders as
RESOURCE_SLOTS: List[Tuple[str, str]] = [
    ('library', 'library'),
    ('collections', 'collections'),
    ('publications', 'publications'),
    ('items', 'items'),
    ('searches', 'searches'),
    ('top', 'top'),
    ('trash', 'trash'),
    ('tags', 'tags'),
    ('children', 'children'),
    ('groups', 'groups'),
    ('subcollections', 'collections'),
    ('item_types', 'itemTypes'),
    ('item_fields', 'itemFields'),
    ('schema', 'schema'),
    ('creator_fields', 'creatorFields'),
    ('item_type_fields', 'itemTypeFields'),
    ('item_type_creator_types', 'itemTypeCreatorTypes'),
    ('template', 'items/new'),
    ('file', 'file'),
    ('file_url', 'file/view/url'),
    ('settings', 'settings'),
    ('deleted', 'deleted'),
    ('verify_key_access', 'keys/current'),
]

SLOT_NAMES = frozenset(name for name, _ in RESOURCE_SLOTS)


@dataclass(frozen=True)
class ResourceDescriptor:
    """Which REST sub-resource a request targets"""
    slots: Mapping[str, ResourceSlot] = field(default_factory=dict)

    def __post_init__(self):
        unknown = [name for name in self.slots if name not in SLOT_NAMES]
        if unknown:
            raise ConfigurationError(f"Unknown resource slot(s): {', '.join(sorted(unknown))}")
        present = {
            name: ResourceSlot.from_value(value)
            for name, value in self.slots.items()
        }
        present = {name: slot for name, slot in present.items() if slot.is_present}
        object.__setattr__(self, 'slots', MappingProxyType(present))

    @classmethod
    def of(cls, **slots: Union[ResourceSlot, str, None]) -> "ResourceDescriptor":
        """Shorthand constructor: ResourceDescriptor.of(library='u1', items=None)"""
        return cls(slots)

    def get(self, name: str) -> ResourceSlot:
        return self.slots.get(name, ResourceSlot.absent())

    def has(self, name: str) -> bool:
        return name in self.slots

    def key(self, name: str) -> Optional[str]:
        return self.get(name).key

    def with_slots(self, slots: Mapping[str, Union[ResourceSlot, str, None]]) -> "ResourceDescriptor":
        """Return a new descriptor with the given slots set, replaced or (when ABSENT) removed"""
        merged: Dict[str, ResourceSlot] = dict(self.slots)
        for name, value in slots.items():
            merged[name] = ResourceSlot.from_value(value)
        return ResourceDescriptor(merged)

    def __iter__(self) -> Iterator[Tuple[str, ResourceSlot]]:
        for name, _ in RESOURCE_SLOTS:
            if name in self.slots:
                yield name, self.slots[name]

    def __len__(self) -> int:
        return len(self.slots)


# Header fields mapped to their wire names
HEADER_NAMES: Dict[str, str] = {
    'authorization': 'Authorization',
    'content_type': 'Content-Type',
    'if_match': 'If-Match',
    'if_modified_since_version': 'If-Modified-Since-Version',
    'if_none_match': 'If-None-Match',
    'if_unmodified_since_version': 'If-Unmodified-Since-Version',
    'zotero_api_key': 'Zotero-API-Key',
    'zotero_write_token': 'Zotero-Write-Token',
    'zotero_schema_version': 'Zotero-Schema-Version',
}

# Query fields mapped to their wire names, in emission order
QUERY_PARAMS: List[Tuple[str, str]] = [
    ('annotation_type', 'annotationType'),
    ('collection_key', 'collectionKey'),
    ('content', 'content'),
    ('direction', 'direction'),
    ('format', 'format'),
    ('include', 'include'),
    ('include_trashed', 'includeTrashed'),
    ('item_key', 'itemKey'),
    ('item_q', 'itemQ'),
    ('item_q_mode', 'itemQMode'),
    ('item_tag', 'itemTag'),
    ('item_type', 'itemType'),
    ('limit', 'limit'),
    ('link_mode', 'linkMode'),
    ('linkwrap', 'linkwrap'),
    ('locale', 'locale'),
    ('q', 'q'),
    ('qmode', 'qmode'),
    ('search_key', 'searchKey'),
    ('since', 'since'),
    ('sort', 'sort'),
    ('start', 'start'),
    ('style', 'style'),
    ('tag', 'tag'),
]

# One name=value pair per element
ARRAY_QUERY_PARAMS = frozenset({'tag', 'item_tag'})

# Comma-joined into a single value
KEY_LIST_QUERY_PARAMS = frozenset({'item_key', 'collection_key', 'search_key'})

READ_METHODS = frozenset({'GET'})
WRITE_METHODS = frozenset({'POST', 'PUT', 'PATCH', 'DELETE'})


@dataclass(frozen=True)
class RequestConfig:
    """Everything needed to issue, retry and classify a single API request"""
    resource: ResourceDescriptor = field(default_factory=ResourceDescriptor)

    # endpoint
    api_scheme: str = "https"
    api_authority_part: str = "api.zotero.org"
    api_path: str = ""

    # headers
    authorization: Optional[str] = None
    content_type: Optional[str] = "application/json"
    if_match: Optional[str] = None
    if_modified_since_version: Optional[int] = None
    if_none_match: Optional[str] = None
    if_unmodified_since_version: Optional[int] = None
    zotero_api_key: Optional[str] = None
    zotero_write_token: Optional[str] = None
    zotero_schema_version: Optional[int] = None

    # query
    annotation_type: Optional[str] = None
    collection_key: Any = None
    content: Optional[str] = None
    direction: Optional[str] = None
    format: Optional[str] = "json"
    include: Optional[str] = None
    include_trashed: Any = None
    item_key: Any = None
    item_q: Optional[str] = None
    item_q_mode: Optional[str] = None
    item_tag: Any = None
    item_type: Optional[str] = None
    limit: Any = None
    link_mode: Optional[str] = None
    linkwrap: Optional[str] = None
    locale: Optional[str] = None
    q: Optional[str] = None
    qmode: Optional[str] = None
    search_key: Any = None
    since: Any = None
    sort: Optional[str] = None
    start: Any = None
    style: Optional[str] = None
    tag: Any = None

    # transport
    method: str = "GET"
    body: Any = None
    mode: str = "cors"
    cache: str = "default"
    credentials: str = "omit"
    redirect: Optional[str] = None
    signal: Any = field(default=None, compare=False)

    # retry
    retry: int = 0
    retry_delay: Optional[float] = None

    # file upload
    file: Optional[bytes] = None
    file_name: Optional[str] = None
    md5sum: Optional[str] = None
    mtime: Optional[int] = None
    file_size: Optional[int] = None
    file_patch: Optional[bytes] = None
    algorithm: Optional[str] = None
    upload_register_only: Optional[bool] = None

    pretend: bool = False

    # converted to a conditional header by resolve_version()
    version: Optional[int] = None

    @property
    def http_method(self) -> str:
        return (self.method or "GET").upper()

    def has_defined(self, name: str) -> bool:
        return getattr(self, name, None) is not None

    @property
    def is_upload(self) -> bool:
        return bool(self.upload_register_only) or (
            self.has_defined('file') and self.has_defined('file_name')
        )


CONFIG_FIELDS = frozenset(f.name for f in dataclasses.fields(RequestConfig))


def with_patch(config: RequestConfig, patch: Mapping[str, Any]) -> RequestConfig:
    """
    Derive a new configuration from an existing one

    A 'resource' entry is merged slot by slot into the existing descriptor
    instead of replacing it. Every other entry replaces the field of the same
    name.

    Args:
        config: Configuration to derive from (left untouched)
        patch: Field names and their new values

    Returns:
        New RequestConfig

    Raises:
        ConfigurationError: If the patch names an unknown field
    """
    unknown = [name for name in patch if name not in CONFIG_FIELDS]
    if unknown:
        raise ConfigurationError(f"Unknown configuration field(s): {', '.join(sorted(unknown))}")

    changes = dict(patch)
    if 'resource' in changes:
        resource = changes['resource']
        if isinstance(resource, ResourceDescriptor):
            resource = resource.slots
        changes['resource'] = config.resource.with_slots(resource or {})

    return dataclasses.replace(config, **changes)


def resolve_version(config: RequestConfig) -> RequestConfig:
    """
    Rewrite the semantic 'version' field into the matching conditional header

    Reads become If-Modified-Since-Version, writes and deletes become
    If-Unmodified-Since-Version.
    """
    if config.version is None:
        return config

    if config.http_method in READ_METHODS:
        return dataclasses.replace(
            config, if_modified_since_version=config.version, version=None
        )
    return dataclasses.replace(
        config, if_unmodified_since_version=config.version, version=None
    )
