"""
Module resolving the datacenter, cluster and storage pod enclosing an inventory
object, and caching the result for the duration of a scrape.
"""

import collections
import enum
import logging
import threading

import constants
from inventory_client import InventoryError

NAME_AND_PARENT = ['name', 'parent']


class AncestorKind(enum.Enum):
    DATACENTER = 'Datacenter'
    CLUSTER = 'ClusterComputeResource'
    STORAGE_POD = 'StoragePod'
    OTHER = None


def classify(type_tag):
    """
    Maps a managed object type to the kind of ancestor it is.
    Every type other than Datacenter, ClusterComputeResource and StoragePod is OTHER.
    :param type_tag: vSphere type name
    :return: AncestorKind

    """
    try:
        return AncestorKind(type_tag)
    except ValueError:
        return AncestorKind.OTHER


class Ancestry(collections.namedtuple('Ancestry', ['datacenter', 'cluster', 'storage_pod'],
                                      defaults=(None, None, None))):
    """
    Names of the enclosing datacenter, cluster and storage pod; None where there is none.
    """
    __slots__ = ()
    failed = False

    def labels(self):
        return tuple(constants.NONE_LABEL if name is None else name for name in self)


class FailedAncestry(object):
    """
    Result of a walk interrupted by a failed remote call.
    """
    __slots__ = ()
    failed = True

    def labels(self):
        return (constants.ERROR_LABEL,) * 3

    def __repr__(self):
        return 'ANCESTRY_ERROR'


NO_ANCESTRY = Ancestry()
ANCESTRY_ERROR = FailedAncestry()


class AncestryCache(object):
    """
    Ancestry records keyed by the reference of the parent of the resolved object.
    Shared by every collector of the process and cleared at the start of each
    collector's update.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries = {}

    def clear(self):
        with self._lock:
            self._entries = {}

    def lookup(self, parent_ref):
        """
        :param parent_ref: ObjectRef
        :return: Ancestry or None when not cached
        """
        with self._lock:
            return self._entries.get(parent_ref)

    def insert(self, parent_ref, ancestry):
        """
        Stores an ancestry record unless one is already cached for the parent.
        """
        with self._lock:
            self._entries.setdefault(parent_ref, ancestry)

    def __len__(self):
        with self._lock:
            return len(self._entries)


class AncestryResolver(object):
    def __init__(self, cache, session, logger=None):
        self._cache = cache
        self._session = session
        self._logger = logger or logging.getLogger(__name__)

    def resolve(self, obj):
        """
        Finds the datacenter, cluster and storage pod above an object by walking up
        its parents until a datacenter or the root is reached.

        A failed remote call yields ANCESTRY_ERROR, which is not cached. ScrapeTimeout
        is propagated so the walk is abandoned without touching the cache.
        :param obj: InventoryObject
        :return: Ancestry or FailedAncestry

        """
        parent_ref = obj.parent
        if parent_ref is None:
            return NO_ANCESTRY
        cached = self._cache.lookup(parent_ref)
        if cached is not None:
            return cached

        found = {}
        current = parent_ref
        while current is not None:
            try:
                node = self._session.retrieve_one(current, NAME_AND_PARENT)
            except InventoryError as e:
                self._logger.debug("Unable to resolve ancestry of {0} at {1} : {2}".format(obj.ref, current, e))
                return ANCESTRY_ERROR
            kind = classify(current.type)
            if kind is AncestorKind.DATACENTER:
                found[kind] = node.name
                break
            if kind is not AncestorKind.OTHER:
                found[kind] = node.name
            current = node.parent

        ancestry = Ancestry(datacenter=found.get(AncestorKind.DATACENTER),
                            cluster=found.get(AncestorKind.CLUSTER),
                            storage_pod=found.get(AncestorKind.STORAGE_POD))
        self._cache.insert(parent_ref, ancestry)
        return ancestry


def _resolve_single(session, ref, logger):
    if ref is None:
        return None
    try:
        return session.retrieve_one(ref, NAME_AND_PARENT)
    except InventoryError as e:
        logger.debug("Unable to retrieve {0} : {1}".format(ref, e))
        return None


def resolve_pool(session, vm, logger=None):
    """
    Retrieves the resource pool owning a virtual machine.
    :param session: InventorySession
    :param vm: InventoryObject with the resourcePool property
    :return: InventoryObject or None

    """
    return _resolve_single(session, vm.get('resourcePool'), logger or logging.getLogger(__name__))


def resolve_host(session, vm, logger=None):
    """
    Retrieves the host a virtual machine currently runs on.
    :param session: InventorySession
    :param vm: InventoryObject with the summary.runtime.host property
    :return: InventoryObject or None

    """
    return _resolve_single(session, vm.get('summary.runtime.host'), logger or logging.getLogger(__name__))
