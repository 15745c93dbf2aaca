"""
Module containing the vCenter inventory session used by the collectors: connecting,
retrieving every object of a type with a set of properties, and retrieving the
properties of a single object.
"""

import collections
import logging
import time
from urllib.parse import urlparse

from pyVim.connect import SmartConnect, Disconnect
from pyVmomi import vim, vmodl
from pyVmomi.VmomiSupport import ManagedObject

DEFAULT_PORT = 443


class InventoryError(Exception):
    """
    Raised when vCenter can not be reached or refuses a property retrieval.
    """


class ScrapeTimeout(Exception):
    """
    Raised when a remote call is attempted after the scrape deadline.
    """


class ObjectRef(collections.namedtuple('ObjectRef', ['type', 'value'])):
    """
    Type tagged reference to a vCenter managed object, eg: ('Datacenter', 'datacenter-2').
    """
    __slots__ = ()

    @classmethod
    def from_mor(cls, mor):
        return cls(mor._wsdlName, mor._moId)

    def __str__(self):
        return "{0}:{1}".format(self.type, self.value)


class InventoryObject(object):
    """
    A managed object reference along with the properties retrieved for it,
    keyed by property path.
    """

    def __init__(self, ref, properties=None):
        self.ref = ref
        self.properties = properties if properties is not None else {}

    @property
    def name(self):
        return self.properties.get('name')

    @property
    def parent(self):
        return self.properties.get('parent')

    def get(self, path, default=None):
        return self.properties.get(path, default)

    def __getitem__(self, path):
        return self.properties[path]

    def __repr__(self):
        return "InventoryObject(ref={0},properties={1})".format(self.ref, sorted(self.properties))


def parse_url(url):
    """
    Splits a vCenter url into host and port. The scheme and the /sdk path are optional.
    :param url: eg: https://vc.example.com/sdk or 127.0.0.1:8989
    :return: tuple

    """
    if '://' not in url:
        url = 'https://' + url
    parts = urlparse(url)
    if not parts.hostname:
        raise InventoryError("Unable to parse url {0}".format(url))
    return parts.hostname, parts.port or DEFAULT_PORT


def remaining_time(deadline):
    if deadline is None:
        return None
    return deadline - time.monotonic()


def open_session(url, username, password, ignore_ssl=True, deadline=None, logger=None):
    """
    Connects to vCenter.
    :param url: vCenter url
    :param username:
    :param password:
    :param ignore_ssl: Skip certificate validation
    :param deadline: time.monotonic() value after which no remote call is issued
    :param logger:
    :return: InventorySession

    """
    logger = logger or logging.getLogger(__name__)
    timeout = remaining_time(deadline)
    if timeout is not None and timeout <= 0:
        raise ScrapeTimeout("Scrape deadline exceeded before connecting to {0}".format(url))
    host, port = parse_url(url)
    kwargs = {'host': host, 'port': port, 'user': username, 'pwd': password}
    if ignore_ssl:
        kwargs['disableSslCertValidation'] = True
    if timeout is not None:
        kwargs['httpConnectionTimeout'] = timeout
    logger.debug("Connecting to {0}:{1}".format(host, port))
    try:
        si = SmartConnect(**kwargs)
    except Exception as e:
        raise InventoryError("Unable to connect to host {0} : {1}".format(url, e))
    return InventorySession(si, deadline=deadline, logger=logger)


class InventorySession(object):

    def __init__(self, si, deadline=None, logger=None):
        self._si = si
        self._content = si.RetrieveContent()
        self._deadline = deadline
        self._logger = logger or logging.getLogger(__name__)

    def _expired(self):
        remaining = remaining_time(self._deadline)
        return remaining is not None and remaining <= 0

    @property
    def version(self):
        return self._content.about.version

    def check_deadline(self):
        if self._expired():
            raise ScrapeTimeout("Scrape deadline exceeded")

    def _to_ref(self, value):
        if isinstance(value, ManagedObject):
            return ObjectRef.from_mor(value)
        return value

    def _to_inventory_object(self, object_content, strict=False):
        properties = {}
        for prop in object_content.propSet:
            properties[prop.name] = self._to_ref(prop.val)
        for missing in object_content.missingSet or []:
            message = getattr(missing.fault, 'msg', None) or type(missing.fault).__name__
            if strict:
                raise InventoryError("Property {0} of {1} is not available : {2}".format(
                    missing.path, object_content.obj, message))
            self._logger.debug("Property {0} missing for {1} : {2}".format(missing.path, object_content.obj, message))
            properties[missing.path] = None
        return InventoryObject(ObjectRef.from_mor(object_content.obj), properties)

    def retrieve_all(self, object_type, property_names):
        """
        Retrieves every object of a type below the root folder.
        :param object_type: vSphere type name, eg: HostSystem
        :param property_names: Property paths to retrieve
        :return: list of InventoryObject

        """
        self.check_deadline()
        vim_type = getattr(vim, object_type)
        pc = self._content.propertyCollector
        try:
            view = self._content.viewManager.CreateContainerView(self._content.rootFolder, [vim_type], True)
        except Exception as e:
            raise InventoryError("Unable to create a view of {0} : {1}".format(object_type, e))
        try:
            obj_spec = vmodl.query.PropertyCollector.ObjectSpec(
                obj=view, skip=True,
                selectSet=[vmodl.query.PropertyCollector.TraversalSpec(
                    name='traverseView', path='view', skip=False, type=vim.view.ContainerView)]
            )
            prop_spec = vmodl.query.PropertyCollector.PropertySpec(
                type=vim_type, all=False, pathSet=list(property_names))
            filter_spec = vmodl.query.PropertyCollector.FilterSpec(objectSet=[obj_spec], propSet=[prop_spec])
            items = []
            result = pc.RetrievePropertiesEx(specSet=[filter_spec],
                                             options=vmodl.query.PropertyCollector.RetrieveOptions())
            while result:
                items.extend(self._to_inventory_object(content) for content in result.objects)
                if not result.token:
                    break
                self.check_deadline()
                result = pc.ContinueRetrievePropertiesEx(token=result.token)
            return items
        except ScrapeTimeout:
            raise
        except Exception as e:
            if self._expired():
                raise ScrapeTimeout("Scrape deadline exceeded while retrieving {0}".format(object_type))
            raise InventoryError("Unable to retrieve {0} : {1}".format(object_type, e))
        finally:
            self._destroy_view(view)

    def retrieve_one(self, ref, property_names):
        """
        Retrieves named properties of a single object.
        :param ref: ObjectRef
        :param property_names: Property paths to retrieve
        :return: InventoryObject

        """
        self.check_deadline()
        try:
            mor = getattr(vim, ref.type)(ref.value, self._si._stub)
            obj_spec = vmodl.query.PropertyCollector.ObjectSpec(obj=mor, skip=False)
            prop_spec = vmodl.query.PropertyCollector.PropertySpec(
                type=type(mor), all=False, pathSet=list(property_names))
            filter_spec = vmodl.query.PropertyCollector.FilterSpec(objectSet=[obj_spec], propSet=[prop_spec])
            result = self._content.propertyCollector.RetrieveContents([filter_spec])
        except Exception as e:
            if self._expired():
                raise ScrapeTimeout("Scrape deadline exceeded while retrieving {0}".format(ref))
            raise InventoryError("Unable to retrieve {0} : {1}".format(ref, e))
        if not result:
            raise InventoryError("Object {0} not found".format(ref))
        return self._to_inventory_object(result[0], strict=True)

    def _destroy_view(self, view):
        try:
            view.Destroy()
        except Exception as e:
            self._logger.error("Unable to destroy view : {0}".format(e))

    def close(self):
        try:
            Disconnect(self._si)
        except Exception as e:
            self._logger.error("Logout error : {0}".format(e))
