"""
Namespaced caching for read-heavy public endpoints (homepage, category list).

Each namespace carries a version number stored in the cache itself; bumping
the version orphans every key of that namespace, which works the same on
Redis and on the local-memory backend used in development and tests.
"""
import logging

from django.core.cache import cache

logger = logging.getLogger('storefront.cache')

CATALOG_NAMESPACE = 'catalog'


def _version_key(namespace):
    return f"ns_version:{namespace}"


def namespace_version(namespace):
    version = cache.get(_version_key(namespace))
    if version is None:
        version = 1
        cache.add(_version_key(namespace), version, None)
    return version


def make_key(namespace, *parts):
    suffix = ':'.join(str(part) for part in parts)
    return f"{namespace}:v{namespace_version(namespace)}:{suffix}"


def invalidate_namespace(namespace):
    try:
        cache.incr(_version_key(namespace))
    except ValueError:
        cache.set(_version_key(namespace), 2, None)
    logger.debug(f"Invalidated cache namespace '{namespace}'")


def cached(namespace, parts, ttl, producer):
    """Return the cached value for (namespace, parts) or compute and store it"""
    key = make_key(namespace, *parts)
    data = cache.get(key)
    if data is not None:
        logger.debug(f"Cache hit: {key}")
        return data
    data = producer()
    cache.set(key, data, ttl)
    return data
