"""
Module containing the metric descriptors exposed for every inventory entity type.
"""

import constants

GAUGE = 'gauge'
COUNTER = 'counter'

# subsystem -> [(name, metric type, help, additional label names)]
metrics = {
    'esx': [
        ('uptime_seconds', COUNTER, 'esx host uptime', ()),
        ('reboot_required', COUNTER, 'esx reboot required', ()),
        ('cpu_cores_total', COUNTER, 'esx number of cores', ()),
        ('avail_cpu_mhz', COUNTER, 'esx total cpu in mhz', ()),
        ('used_cpu_mhz', GAUGE, 'esx cpu usage in mhz', ()),
        ('avail_mem_bytes', GAUGE, 'esx total memory in bytes', ()),
        ('used_mem_bytes', GAUGE, 'esx used memory in bytes', ()),
    ],
    'vm': [
        ('cpu_number_total', COUNTER, 'vm number of cpu', ()),
        ('cores_number_per_socket_total', COUNTER, 'vm number of cores by socket', ()),
        ('memory_bytes', GAUGE, 'vm memory in bytes', ()),
        ('overall_cpu_usage_mhz', GAUGE, 'vm overall CPU usage in MHz', ()),
        ('overall_cpu_demand_mhz', GAUGE, 'vm overall CPU demand in MHz', ()),
        ('guest_memory_usage_bytes', GAUGE, 'vm guest memory usage in bytes', ()),
        ('host_memory_usage_bytes', GAUGE, 'vm host memory usage in bytes', ()),
        ('distributed_cpu_entitlement_mhz', GAUGE, 'vm distributed CPU entitlement in MHz', ()),
        ('distributed_memory_entitlement_bytes', GAUGE, 'vm distributed memory entitlement in bytes', ()),
        ('static_cpu_entitlement_mhz', GAUGE, 'vm static CPU entitlement in MHz', ()),
        ('static_memory_entitlement_bytes', GAUGE, 'vm static memory entitlement in bytes', ()),
        ('private_memory_bytes', GAUGE, 'vm private memory in bytes', ()),
        ('shared_memory_bytes', GAUGE, 'vm shared memory in bytes', ()),
        ('swapped_memory_bytes', GAUGE, 'vm swapped memory in bytes', ()),
        ('ballooned_memory_bytes', GAUGE, 'vm ballooned memory in bytes', ()),
        ('consumed_overhead_memory_bytes', GAUGE, 'vm consumed overhead memory bytes', ()),
        ('ft_log_bandwidth', GAUGE, 'vm ft log bandwidth', ()),
        ('ft_secondary_latency', GAUGE, 'vm ft secondary latency', ()),
        ('compressed_memory_bytes', GAUGE, 'vm compressed memory in bytes', ()),
        ('uptime_seconds', COUNTER, 'vm uptime in seconds', ()),
        ('ssd_swapped_memory_bytes', GAUGE, 'vm ssd swapped memory in bytes', ()),
        ('snapshot_number_total', GAUGE, 'vm number of snapshot', ()),
        ('disk_capacity_bytes', GAUGE, 'vm disk capacity bytes', ('vmdk',)),
        ('network_connected', GAUGE, 'vm network connected', ('network', 'mac', 'ip')),
        ('ethernet_driver_connected', GAUGE, 'vm ethernet driver connected',
         ('driver_model', 'driver_mac', 'driver_status')),
    ],
    'ds': [
        ('capacity_bytes', GAUGE, 'datastore capacity in bytes', ()),
        ('free_space_bytes', GAUGE, 'datastore freespace in bytes', ()),
        ('accessible', GAUGE, 'datastore is accessible', ()),
    ],
    'respool': [
        ('used_cpu_mhz', GAUGE, 'resource pool overall CPU usage MHz', ()),
        ('demanded_cpu_mhz', GAUGE, 'resource pool overall CPU demand MHz', ()),
        ('guest_used_mem_bytes', GAUGE, 'resource pool guest memory usage in bytes', ()),
        ('host_used_mem_bytes', GAUGE, 'resource pool host memory usage in bytes', ()),
        ('distributed_cpu_entitlement_mhz', GAUGE, 'resource pool distributed CPU entitlement', ()),
        ('distributed_mem_entitlement_bytes', GAUGE, 'resource pool distributed memory entitlement', ()),
        ('static_cpu_entitlement_mhz', GAUGE, 'resource pool static cpu entitlement', ()),
        ('private_mem_bytes', GAUGE, 'resource pool private memory in bytes', ()),
        ('shared_mem_bytes', GAUGE, 'resource pool shared memory in bytes', ()),
        ('swapped_mem_bytes', GAUGE, 'resource pool swapped memory in bytes', ()),
        ('ballooned_mem_bytes', GAUGE, 'resource pool ballooned memory in bytes', ()),
        ('overhead_mem_bytes', GAUGE, 'resource pool overhead memory in bytes', ()),
        ('consumed_overhead_mem_bytes', GAUGE, 'resource pool consumed overhead memory in bytes', ()),
        ('compressed_mem_bytes', GAUGE, 'resource pool compressed memory in bytes', ()),
    ],
    'spod': [
        ('capacity_bytes', GAUGE, 'storagePod capacity in bytes', ()),
        ('free_space_bytes', GAUGE, 'storagePod freespace in bytes', ()),
    ],
}


def build_fq_name(*parts):
    return '_'.join(part for part in parts if part)


def get_metrics(subsystem, label_names, exclude_metrics=None):
    """
    Builds the descriptors of a subsystem, leaving out the excluded ones.
    :param subsystem: eg: esx
    :param label_names: Labels common to every metric of the subsystem
    :param exclude_metrics: Mapping of subsystem to the metric names not to report
    :return: dict of metric name to MetricInfo

    """
    excluded = set((exclude_metrics or {}).get(subsystem, []))
    descriptors = {}
    for name, metric_type, description, extra_labels in metrics[subsystem]:
        if name in excluded:
            continue
        descriptors[name] = MetricInfo(build_fq_name(constants.NAMESPACE, subsystem, name), description,
                                       metric_type, tuple(label_names) + tuple(extra_labels))
    return descriptors


class MetricInfo(object):
    def __init__(self, name, description, metric_type, label_names):
        self.name = name
        self.description = description
        self.metric_type = metric_type
        self.label_names = label_names

    def __str__(self):
        return ("MetricInfo(name={0},metric_type={1},label_names={2})"
                .format(self.name, self.metric_type, self.label_names))

    __repr__ = __str__
