import collections
import logging
import time
from concurrent.futures import ThreadPoolExecutor

import constants
import metric_metadata
from ancestry import AncestryCache
from collectors import COLLECTORS, VirtualMachineCollector
from inventory_client import InventoryError, ScrapeTimeout
from sinks import PrometheusSink, SampleBuffer
from utils import b2f

SCRAPE_DURATION = metric_metadata.MetricInfo(
    metric_metadata.build_fq_name(constants.NAMESPACE, 'scrape', 'collector_duration_seconds'),
    'govc_exporter: Duration of a collector scrape.', metric_metadata.GAUGE, ('collector',))

SCRAPE_SUCCESS = metric_metadata.MetricInfo(
    metric_metadata.build_fq_name(constants.NAMESPACE, 'scrape', 'collector_success'),
    'govc_exporter: Whether a collector succeeded.', metric_metadata.GAUGE, ('collector',))

CollectorResult = collections.namedtuple('CollectorResult', ['name', 'success', 'duration', 'samples'])


class Exporter(object):

    def __init__(self, config, session_factory=None):
        """
        Builds the enabled collectors around a single ancestry cache.
        :param config: Configuration of the exporter.
        :param session_factory: Callable opening inventory sessions, for the collectors.

        """
        self._name = config['Name']
        self._logger = logging.getLogger("{0}-EXP".format(self._name))
        self._scrape_timeout = config.get('ScrapeTimeout', constants.DEFAULT_SCRAPE_TIMEOUT)
        self._cache = AncestryCache()
        connection = {
            'url': config['host'],
            'username': config['username'],
            'password': config['password'],
            'ignore_ssl': config.get('IgnoreSSL', True),
        }
        self._collectors = []
        for subsystem in config.get('Collectors', list(COLLECTORS)):
            if subsystem not in COLLECTORS:
                raise ValueError("Unknown collector : {0}".format(subsystem))
            kwargs = {
                'exclude_metrics': config.get('ExcludeMetrics', {}),
                'instance_id': self._name,
                'session_factory': session_factory,
            }
            if COLLECTORS[subsystem] is VirtualMachineCollector:
                kwargs['annotation_labels'] = config.get('AnnotationLabels', False)
            self._collectors.append(COLLECTORS[subsystem](self._cache, connection, **kwargs))
        self._logger.info("Enabled collectors : {0}".format(', '.join(c.subsystem for c in self._collectors)))

    @property
    def collectors(self):
        return list(self._collectors)

    def get_instance_id(self):
        return self._name

    def _run_collector(self, collector, deadline):
        """
        Runs one collector into a private buffer. The buffer is discarded when the collector fails.
        :return: CollectorResult

        """
        buffer = SampleBuffer()
        start = time.monotonic()
        success = False
        try:
            count = collector.update(buffer, deadline)
            success = True
            self._logger.debug("Collector {0} retrieved {1} objects".format(collector.subsystem, count))
        except (InventoryError, ScrapeTimeout) as e:
            self._logger.error("Collector {0} failed : {1}".format(collector.subsystem, e))
        except Exception:
            self._logger.exception("Collector {0} failed".format(collector.subsystem))
        duration = time.monotonic() - start
        return CollectorResult(collector.subsystem, success, duration, buffer if success else SampleBuffer())

    def scrape(self):
        """
        Runs every enabled collector concurrently, bounded by the scrape timeout.
        :return: list of CollectorResult

        """
        if not self._collectors:
            return []
        deadline = None
        if self._scrape_timeout:
            deadline = time.monotonic() + self._scrape_timeout
        with ThreadPoolExecutor(max_workers=len(self._collectors)) as pool:
            futures = [pool.submit(self._run_collector, collector, deadline) for collector in self._collectors]
        return [future.result() for future in futures]

    def emit_results(self, results, sink):
        for result in results:
            result.samples.replay(sink)
            sink.emit(SCRAPE_DURATION, result.duration, [result.name])
            sink.emit(SCRAPE_SUCCESS, b2f(result.success), [result.name])

    def describe(self):
        return []

    def collect(self):
        """
        Scrapes vCenter and returns the metric families, for prometheus_client.
        :return: list

        """
        sink = PrometheusSink()
        self.emit_results(self.scrape(), sink)
        return sink.families()

    def push(self, sink):
        """
        Scrapes vCenter and dispatches the samples to a SignalFx sink.
        :return: number of datapoints dispatched

        """
        self.emit_results(self.scrape(), sink)
        return sink.flush()
