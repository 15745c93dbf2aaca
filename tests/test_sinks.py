import unittest

import mock

import metric_metadata
from sinks import PrometheusSink, SampleBuffer, SignalFxSink

GAUGE_INFO = metric_metadata.MetricInfo('govc_ds_capacity_bytes', 'datastore capacity in bytes',
                                        metric_metadata.GAUGE, ('vc', 'dc', 'name'))
COUNTER_INFO = metric_metadata.MetricInfo('govc_esx_uptime_seconds', 'esx host uptime',
                                          metric_metadata.COUNTER, ('vc', 'dc', 'name'))


class SampleBufferTests(unittest.TestCase):

    def test_replay(self):
        buffer = SampleBuffer()
        buffer.emit(GAUGE_INFO, 10, ['vc', 'DC1', 'ds-01'])
        buffer.emit(COUNTER_INFO, 20, ['vc', 'DC1', None])
        target = mock.Mock()
        buffer.replay(target)
        self.assertEqual(2, len(buffer))
        target.emit.assert_any_call(GAUGE_INFO, 10.0, ('vc', 'DC1', 'ds-01'))
        target.emit.assert_any_call(COUNTER_INFO, 20.0, ('vc', 'DC1', ''))

    def test_label_count_mismatch(self):
        with self.assertRaises(ValueError):
            SampleBuffer().emit(GAUGE_INFO, 10, ['vc', 'DC1'])


class PrometheusSinkTests(unittest.TestCase):

    def test_families(self):
        sink = PrometheusSink()
        sink.emit(GAUGE_INFO, 10, ['vc', 'DC1', 'ds-01'])
        sink.emit(GAUGE_INFO, 11, ['vc', 'DC1', 'ds-02'])
        sink.emit(COUNTER_INFO, 5, ['vc', 'DC1', 'esx-01'])
        families = sink.families()
        self.assertEqual(['gauge', 'counter'], [f.type for f in families])
        self.assertEqual(2, len(families[0].samples))
        self.assertEqual({'vc': 'vc', 'dc': 'DC1', 'name': 'ds-02'}, families[0].samples[1].labels)
        self.assertEqual('govc_esx_uptime_seconds_total', families[1].samples[0].name)


class SignalFxSinkTests(unittest.TestCase):

    def test_datapoint_dimensions(self):
        ingest = mock.Mock()
        sink = SignalFxSink(ingest, dimensions={'env': 'prod'})
        sink.emit(GAUGE_INFO, 10, ['vc', 'DC1', 'ds-01'])
        self.assertEqual(1, sink.flush())
        kwargs = ingest.send.call_args[1]
        self.assertEqual([], kwargs['cumulative_counters'])
        gauge = kwargs['gauges'][0]
        self.assertEqual('govc_ds_capacity_bytes', gauge['metric'])
        self.assertEqual(10, gauge['value'])
        self.assertEqual({'env': 'prod', 'vc': 'vc', 'dc': 'DC1', 'name': 'ds-01',
                          'metric_source': 'govc_exporter'}, gauge['dimensions'])

    def test_counters_are_cumulative(self):
        ingest = mock.Mock()
        sink = SignalFxSink(ingest)
        sink.emit(COUNTER_INFO, 5, ['vc', 'DC1', 'esx-01'])
        sink.flush()
        kwargs = ingest.send.call_args[1]
        self.assertEqual([], kwargs['gauges'])
        self.assertEqual(1, len(kwargs['cumulative_counters']))

    def test_batches(self):
        ingest = mock.Mock()
        sink = SignalFxSink(ingest)
        for i in range(250):
            sink.emit(GAUGE_INFO, i, ['vc', 'DC1', 'ds-{0}'.format(i)])
        self.assertEqual(250, sink.flush())
        self.assertEqual([100, 100, 50], [len(c[1]['gauges']) for c in ingest.send.call_args_list])
        self.assertEqual(0, sink.flush())

    def test_send_error_is_logged(self):
        ingest = mock.Mock()
        ingest.send.side_effect = RuntimeError("ingest unavailable")
        logger = mock.Mock()
        sink = SignalFxSink(ingest, logger=logger)
        sink.emit(GAUGE_INFO, 1, ['vc', 'DC1', 'ds-01'])
        sink.flush()
        self.assertTrue(logger.error.called)
