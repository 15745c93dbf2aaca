"""
Module containing one collector per vCenter entity type. Each collector turns the
objects retrieved on a scrape into labeled samples.
"""

import json
import logging

from pyVmomi import vim

import constants
import inventory_client
import metric_metadata
from ancestry import AncestryResolver, resolve_host, resolve_pool
from utils import b2f

MB = 1024 * 1024


def _num(value):
    return 0 if value is None else value


class EntityCollector(object):
    subsystem = None
    object_type = None
    properties = ['parent', 'summary']
    label_names = ()

    def __init__(self, cache, connection, exclude_metrics=None, instance_id=None, session_factory=None):
        """
        :param cache: AncestryCache shared by every collector of the process
        :param connection: dict with url, username, password and ignore_ssl
        :param exclude_metrics: Mapping of subsystem to the metric names not to report
        :param instance_id: Prefix of the logger name
        :param session_factory: Callable opening an inventory session, defaults to inventory_client.open_session
        """
        self._cache = cache
        self._connection = connection
        self._session_factory = session_factory or inventory_client.open_session
        self._logger = logging.getLogger("{0}-{1}".format(instance_id or constants.DEFAULT_NAME, self.subsystem))
        self.metrics = metric_metadata.get_metrics(self.subsystem, self._get_label_names(), exclude_metrics)

    @property
    def vc(self):
        return self._connection['url']

    def _get_label_names(self):
        return list(self.label_names)

    def _open_session(self, deadline):
        return self._session_factory(self._connection['url'], self._connection['username'],
                                     self._connection['password'],
                                     ignore_ssl=self._connection.get('ignore_ssl', True),
                                     deadline=deadline, logger=self._logger)

    def update(self, sink, deadline=None):
        """
        Retrieves every object of the collector's type and emits its samples.
        Connection and retrieval errors are raised. Ancestry errors show up as labels, and as
        one warning per update.
        :param sink: Receives emit(metric_info, value, label_values)
        :param deadline: time.monotonic() value after which the scrape is abandoned
        :return: number of objects retrieved

        """
        self._cache.clear()
        session = self._open_session(deadline)
        try:
            items = session.retrieve_all(self.object_type, self.properties)
            self._logger.debug("{0} {1} retrieved".format(len(items), self.object_type))
            resolver = AncestryResolver(self._cache, session, self._logger)
            unresolved = 0
            for item in items:
                session.check_deadline()
                ancestry = self._collect_item(sink, session, resolver, item)
                if ancestry is not None and ancestry.failed:
                    unresolved += 1
            if unresolved:
                self._logger.warning("Ancestry of {0} out of {1} {2} could not be resolved".format(
                    unresolved, len(items), self.object_type))
            return len(items)
        finally:
            session.close()

    def _collect_item(self, sink, session, resolver, item):
        """
        Emits the samples of one object.
        :return: the Ancestry used for its labels, None when the object is skipped
        """
        raise NotImplementedError

    def _emit(self, sink, name, value, label_values):
        metric_info = self.metrics.get(name)
        if metric_info is not None:
            sink.emit(metric_info, value, label_values)


class HostCollector(EntityCollector):
    subsystem = 'esx'
    object_type = 'HostSystem'
    label_names = ('vc', 'dc', 'cluster', 'name', 'version', 'status')

    def _collect_item(self, sink, session, resolver, item):
        summary = item.get('summary')
        if summary is None:
            self._logger.debug("Skipping {0}, its summary is not available".format(item.ref))
            return None
        ancestry = resolver.resolve(item)
        dc, cluster, _ = ancestry.labels()
        hardware = summary.hardware
        qs = summary.quickStats
        labels = [self.vc, dc, cluster, summary.config.name, summary.config.product.version, summary.overallStatus]

        self._emit(sink, 'uptime_seconds', _num(qs.uptime), labels)
        self._emit(sink, 'reboot_required', b2f(summary.rebootRequired), labels)
        self._emit(sink, 'cpu_cores_total', _num(hardware.numCpuCores), labels)
        self._emit(sink, 'avail_cpu_mhz', _num(hardware.numCpuCores) * _num(hardware.cpuMhz), labels)
        self._emit(sink, 'used_cpu_mhz', _num(qs.overallCpuUsage), labels)
        self._emit(sink, 'avail_mem_bytes', _num(hardware.memorySize), labels)
        self._emit(sink, 'used_mem_bytes', _num(qs.overallMemoryUsage) * MB, labels)
        return ancestry


class VirtualMachineCollector(EntityCollector):
    subsystem = 'vm'
    object_type = 'VirtualMachine'
    properties = [
        'config',
        'guest',
        'parent',
        'resourcePool',
        'runtime',
        'snapshot',
        'summary',
        'summary.runtime.host',
    ]
    label_names = ('vc', 'dc', 'cluster', 'esx', 'pool',
                   'name', 'hostname', 'guestfullname',
                   'power_state', 'overall_status',
                   'tools_status', 'tools_version')
    annotation_label_names = ('crit', 'responsable', 'service')

    # metric name -> quick stats field, multiplier
    quick_stats = [
        ('overall_cpu_usage_mhz', 'overallCpuUsage', 1),
        ('overall_cpu_demand_mhz', 'overallCpuDemand', 1),
        ('guest_memory_usage_bytes', 'guestMemoryUsage', MB),
        ('host_memory_usage_bytes', 'hostMemoryUsage', MB),
        ('distributed_cpu_entitlement_mhz', 'distributedCpuEntitlement', 1),
        ('distributed_memory_entitlement_bytes', 'distributedMemoryEntitlement', MB),
        ('static_cpu_entitlement_mhz', 'staticCpuEntitlement', 1),
        ('static_memory_entitlement_bytes', 'staticMemoryEntitlement', MB),
        ('private_memory_bytes', 'privateMemory', MB),
        ('shared_memory_bytes', 'sharedMemory', MB),
        ('swapped_memory_bytes', 'swappedMemory', MB),
        ('ballooned_memory_bytes', 'balloonedMemory', MB),
        ('consumed_overhead_memory_bytes', 'consumedOverheadMemory', MB),
        ('ft_log_bandwidth', 'ftLogBandwidth', 1),
        ('ft_secondary_latency', 'ftSecondaryLatency', 1),
        ('compressed_memory_bytes', 'compressedMemory', MB),
        ('uptime_seconds', 'uptimeSeconds', 1),
        ('ssd_swapped_memory_bytes', 'ssdSwappedMemory', MB),
    ]

    def __init__(self, cache, connection, exclude_metrics=None, instance_id=None, session_factory=None,
                 annotation_labels=False):
        self._annotation_labels = annotation_labels
        EntityCollector.__init__(self, cache, connection, exclude_metrics, instance_id, session_factory)

    def _get_label_names(self):
        label_names = list(self.label_names)
        if self._annotation_labels:
            label_names.extend(self.annotation_label_names)
        return label_names

    def _collect_item(self, sink, session, resolver, item):
        config = item.get('config')
        summary = item.get('summary')
        if config is None or summary is None:
            self._logger.debug("Skipping {0}, its configuration is not available".format(item.ref))
            return None
        guest = item.get('guest')
        runtime = item.get('runtime')

        pool = resolve_pool(session, item, self._logger)
        if pool is None:
            ancestry = resolver.resolve(item)
            pool_name = constants.NONE_LABEL
        else:
            ancestry = resolver.resolve(pool)
            pool_name = pool.name
        host = resolve_host(session, item, self._logger)
        esx_name = constants.NONE_LABEL if host is None else host.name
        dc, cluster, _ = ancestry.labels()

        labels = [
            self.vc,
            dc,
            cluster,
            esx_name,
            pool_name,
            summary.config.name,
            summary.guest.hostName if summary.guest else None,
            summary.guest.guestFullName if summary.guest else None,
            runtime.powerState if runtime else None,
            summary.overallStatus,
            guest.toolsStatus if guest else None,
            guest.toolsVersion if guest else None,
        ]
        if self._annotation_labels:
            annotation = get_annotation(config.annotation)
            labels.extend([annotation['crit'], annotation['resp'], annotation['svc']])

        hardware = config.hardware
        self._emit(sink, 'cpu_number_total', _num(hardware.numCPU), labels)
        self._emit(sink, 'cores_number_per_socket_total', _num(hardware.numCoresPerSocket), labels)
        self._emit(sink, 'memory_bytes', _num(hardware.memoryMB) * MB, labels)
        qs = summary.quickStats
        for name, field, multiplier in self.quick_stats:
            self._emit(sink, name, _num(getattr(qs, field, None)) * multiplier, labels)

        snapshot = item.get('snapshot')
        self._emit(sink, 'snapshot_number_total', len(snapshot.rootSnapshotList or []) if snapshot else 0, labels)

        for device in get_ethernet_devices(hardware.device):
            self._emit(sink, 'ethernet_driver_connected', b2f(device['connected']),
                       labels + [device['type_name'], device['mac'], device['status']])
        for network in get_networks(guest):
            for ip in network['ip']:
                self._emit(sink, 'network_connected', b2f(network['connected']),
                           labels + [network['network'], network['mac'], ip])
        for disk in get_disks(hardware.device):
            self._emit(sink, 'disk_capacity_bytes', disk['capacity'], labels + [disk['vmdk']])
        return ancestry


def get_annotation(annotation):
    """
    Reads the crit, resp and svc keys of a JSON virtual machine annotation.
    :param annotation: Annotation text
    :return: dict

    """
    values = {
        'crit': constants.NOT_DEFINED_LABEL,
        'resp': constants.NOT_DEFINED_LABEL,
        'svc': constants.NOT_DEFINED_LABEL,
    }
    try:
        parsed = json.loads(annotation or '')
    except ValueError:
        return values
    if isinstance(parsed, dict):
        for key in values:
            if isinstance(parsed.get(key), str):
                values[key] = parsed[key]
    return values


def get_ethernet_devices(devices):
    res = []
    for dev in devices or []:
        if not isinstance(dev, vim.vm.device.VirtualEthernetCard):
            continue
        status = 'unknown'
        connected = False
        if dev.connectable is not None:
            status = dev.connectable.status
            connected = dev.connectable.connected
        type_name = dev._wsdlName
        if type_name.startswith('Virtual'):
            type_name = type_name[len('Virtual'):]
        res.append({
            'type_name': type_name,
            'mac': dev.macAddress,
            'status': status,
            'connected': connected,
        })
    return res


def get_networks(guest):
    if guest is None:
        return []
    return [{
        'network': nic.network,
        'mac': nic.macAddress,
        'ip': list(nic.ipAddress or []),
        'connected': nic.connected,
    } for nic in guest.net or []]


def get_disks(devices):
    return [{
        'vmdk': getattr(dev.backing, 'fileName', ''),
        'capacity': _num(dev.capacityInBytes),
    } for dev in devices or [] if isinstance(dev, vim.vm.device.VirtualDisk)]


class DatastoreCollector(EntityCollector):
    subsystem = 'ds'
    object_type = 'Datastore'
    label_names = ('vc', 'dc', 'name', 'type', 'cluster', 'maintenance_mode')

    def _collect_item(self, sink, session, resolver, item):
        summary = item.get('summary')
        if summary is None:
            return None
        ancestry = resolver.resolve(item)
        dc, _, storage_pod = ancestry.labels()
        labels = [self.vc, dc, summary.name, summary.type, storage_pod, summary.maintenanceMode]

        self._emit(sink, 'capacity_bytes', _num(summary.capacity), labels)
        self._emit(sink, 'free_space_bytes', _num(summary.freeSpace), labels)
        self._emit(sink, 'accessible', b2f(summary.accessible), labels)
        return ancestry


class ResourcePoolCollector(EntityCollector):
    subsystem = 'respool'
    object_type = 'ResourcePool'
    label_names = ('vc', 'dc', 'name')

    # metric name -> quick stats field, multiplier
    quick_stats = [
        ('used_cpu_mhz', 'overallCpuUsage', 1),
        ('demanded_cpu_mhz', 'overallCpuDemand', 1),
        ('guest_used_mem_bytes', 'guestMemoryUsage', MB),
        ('host_used_mem_bytes', 'hostMemoryUsage', MB),
        ('distributed_cpu_entitlement_mhz', 'distributedCpuEntitlement', 1),
        ('distributed_mem_entitlement_bytes', 'distributedMemoryEntitlement', MB),
        ('static_cpu_entitlement_mhz', 'staticCpuEntitlement', 1),
        ('private_mem_bytes', 'privateMemory', MB),
        ('shared_mem_bytes', 'sharedMemory', MB),
        ('swapped_mem_bytes', 'swappedMemory', MB),
        ('ballooned_mem_bytes', 'balloonedMemory', MB),
        ('overhead_mem_bytes', 'overheadMemory', MB),
        ('consumed_overhead_mem_bytes', 'consumedOverheadMemory', MB),
        ('compressed_mem_bytes', 'compressedMemory', MB),
    ]

    def _collect_item(self, sink, session, resolver, item):
        summary = item.get('summary')
        if summary is None or summary.quickStats is None:
            return None
        ancestry = resolver.resolve(item)
        dc, _, _ = ancestry.labels()
        labels = [self.vc, dc, summary.name]
        for name, field, multiplier in self.quick_stats:
            self._emit(sink, name, _num(getattr(summary.quickStats, field, None)) * multiplier, labels)
        return ancestry


class StoragePodCollector(EntityCollector):
    subsystem = 'spod'
    object_type = 'StoragePod'
    label_names = ('vc', 'dc', 'name')

    def _collect_item(self, sink, session, resolver, item):
        summary = item.get('summary')
        if summary is None:
            return None
        ancestry = resolver.resolve(item)
        dc, _, _ = ancestry.labels()
        labels = [self.vc, dc, summary.name]

        self._emit(sink, 'capacity_bytes', _num(summary.capacity), labels)
        self._emit(sink, 'free_space_bytes', _num(summary.freeSpace), labels)
        return ancestry


COLLECTORS = {
    HostCollector.subsystem: HostCollector,
    VirtualMachineCollector.subsystem: VirtualMachineCollector,
    DatastoreCollector.subsystem: DatastoreCollector,
    ResourcePoolCollector.subsystem: ResourcePoolCollector,
    StoragePodCollector.subsystem: StoragePodCollector,
}
