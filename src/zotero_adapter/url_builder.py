"""
URL path, query string and header assembly for API requests
"""

import logging
from typing import Dict, List
from urllib.parse import quote

from .request_config import (
    ARRAY_QUERY_PARAMS,
    HEADER_NAMES,
    KEY_LIST_QUERY_PARAMS,
    QUERY_PARAMS,
    RESOURCE_SLOTS,
    RequestConfig,
    ResourceDescriptor,
    SlotState,
)

logger = logging.getLogger(__name__)

LIBRARY_PREFIXES = {
    'u': 'users',
    'g': 'groups',
}


def make_url_path(resource: ResourceDescriptor) -> str:
    """
    Render a resource descriptor as a URL path in canonical slot order

    Args:
        resource: Descriptor of the targeted sub-resource

    Returns:
        Path segments joined with '/', without leading or trailing slash
    """
    path: List[str] = []

    for name, segment in RESOURCE_SLOTS:
        slot = resource.get(name)
        if slot.state is SlotState.ABSENT:
            continue

        if name == 'library':
            library_key = slot.key or ''
            prefix = LIBRARY_PREFIXES.get(library_key[:1])
            if prefix:
                path.extend([prefix, library_key[1:]])
            continue

        path.append(segment)
        if slot.state is SlotState.KEYED:
            path.append(slot.key)

    return '/'.join(path)


def _encode(value) -> str:
    if isinstance(value, bool):
        value = 'true' if value else 'false'
    return quote(str(value), safe='')


def make_url_query(config: RequestConfig) -> str:
    """
    Render recognised query fields as a query string

    Falsy values (None, 0, '', False, empty lists) are omitted. Parameters
    are emitted in declared order, not in the order they were configured.

    Args:
        config: Request configuration

    Returns:
        '?'-prefixed query string, or '' when no parameter applies
    """
    params: List[str] = []

    for name, wire_name in QUERY_PARAMS:
        value = getattr(config, name)
        if not value:
            continue

        if isinstance(value, (list, tuple)):
            if name in ARRAY_QUERY_PARAMS:
                params.extend(f"{wire_name}={_encode(item)}" for item in value)
            elif name in KEY_LIST_QUERY_PARAMS:
                params.append(f"{wire_name}={','.join(_encode(item) for item in value)}")
            else:
                params.append(f"{wire_name}={_encode(','.join(str(item) for item in value))}")
        else:
            params.append(f"{wire_name}={_encode(value)}")

    return '?' + '&'.join(params) if params else ''


def make_headers(config: RequestConfig) -> Dict[str, str]:
    """
    Map recognised header fields to wire header names

    Only fields that are not None are emitted.
    """
    headers: Dict[str, str] = {}
    for name, wire_name in HEADER_NAMES.items():
        value = getattr(config, name)
        if value is not None:
            headers[wire_name] = str(value)
    return headers


def make_base_url(config: RequestConfig) -> str:
    """Scheme, authority and optional path prefix, always ending with '/'"""
    base = f"{config.api_scheme}://{config.api_authority_part}/"
    api_path = (config.api_path or '').strip('/')
    if api_path:
        base += api_path + '/'
    return base


def make_url(config: RequestConfig) -> str:
    """
    Fully resolved URL for a request configuration

    Args:
        config: Request configuration

    Returns:
        URL with path and query string
    """
    url = f"{make_base_url(config)}{make_url_path(config.resource)}{make_url_query(config)}"
    logger.debug(f"Resolved request URL: {url}")
    return url
