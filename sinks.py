"""
Module containing the destinations of the samples produced by the collectors.
Every sink accepts emit(metric_info, value, label_values).
"""

import collections
import logging
import time

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

import constants
import metric_metadata

Sample = collections.namedtuple('Sample', ['metric_info', 'value', 'label_values'])


def _label(value):
    return '' if value is None else str(value)


class SampleBuffer(object):
    """
    Keeps the samples of one collector until it has finished, so that a collector
    failing halfway emits nothing.
    """

    def __init__(self):
        self.samples = []

    def emit(self, metric_info, value, label_values):
        if len(label_values) != len(metric_info.label_names):
            raise ValueError("{0} expects {1} label values, got {2}".format(
                metric_info.name, len(metric_info.label_names), len(label_values)))
        self.samples.append(Sample(metric_info, float(value), tuple(_label(v) for v in label_values)))

    def replay(self, sink):
        for sample in self.samples:
            sink.emit(*sample)

    def __len__(self):
        return len(self.samples)


class PrometheusSink(object):
    def __init__(self):
        self._families = collections.OrderedDict()

    def emit(self, metric_info, value, label_values):
        family = self._families.get(metric_info.name)
        if family is None:
            if metric_info.metric_type == metric_metadata.COUNTER:
                family_class = CounterMetricFamily
            else:
                family_class = GaugeMetricFamily
            family = family_class(metric_info.name, metric_info.description, labels=list(metric_info.label_names))
            self._families[metric_info.name] = family
        family.add_metric([_label(v) for v in label_values], float(value))

    def families(self):
        return list(self._families.values())


class SignalFxSink(object):

    def __init__(self, ingest, dimensions=None, logger=None):
        """
        :param ingest: SignalFx ingest client
        :param dimensions: Dimensions added to every datapoint
        :param logger:
        """
        self._ingest = ingest
        self._dimensions = dimensions or {}
        self._logger = logger or logging.getLogger(__name__)
        self._datapoints = []

    def emit(self, metric_info, value, label_values):
        dimensions = dict(self._dimensions)
        dimensions.update(zip(metric_info.label_names, (_label(v) for v in label_values)))
        dimensions['metric_source'] = constants.METRIC_SOURCE
        timestamp = int(time.time()) * 1000
        self._datapoints.append(Datapoint(metric_info.name, metric_info.metric_type, value, dimensions, timestamp))

    def _build_payload(self, dps):
        """
        Splits the datapoints into ingest client payloads of at most INGEST_BATCH_SIZE datapoints.
        :param dps: datapoints
        :return: list

        """
        payload = []
        delta = constants.INGEST_BATCH_SIZE
        for start in range(0, len(dps), delta):
            gauges = []
            counters = []
            for dp in dps[start: start + delta]:
                payload_obj = {
                    'metric': dp.metric_name,
                    'value': dp.value,
                    'dimensions': dp.dimensions,
                    'timestamp': dp.timestamp
                }
                if dp.metric_type == metric_metadata.COUNTER:
                    counters.append(payload_obj)
                else:
                    gauges.append(payload_obj)
            payload.append({
                'gauges': gauges,
                'cumulative_counters': counters
            })
        return payload

    def flush(self):
        """
        Dispatches the datapoints emitted so far to the ingest client.
        :return: number of datapoints dispatched

        """
        dps, self._datapoints = self._datapoints, []
        for item in self._build_payload(dps):
            try:
                self._ingest.send(gauges=item['gauges'], cumulative_counters=item['cumulative_counters'])
            except Exception as e:
                self._logger.error("Exception while sending payload to ingest : {0}".format(e))
        return len(dps)


class Datapoint(object):
    """

    Plain Object to hold metric as a datapoint.

    """
    def __init__(self, metric_name, metric_type, value, dimensions, timestamp):
        self.metric_name = metric_name
        self.metric_type = metric_type
        self.value = value
        self.dimensions = dimensions
        self.timestamp = timestamp
