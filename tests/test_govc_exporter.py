import os
import shutil
import tempfile
import threading
import unittest

import govc_exporter
import constants

CONFIG_YAML = """
config:
  host: vc.example.com
  username: monitor
  password: secret
  Name: Lab
  ScrapeTimeout: 15
  Collectors: [esx, vm]
"""


class GetConfigTests(unittest.TestCase):

    def setUp(self):
        self.directory = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.directory)

    def write(self, text):
        path = os.path.join(self.directory, 'config.yaml')
        with open(path, 'w') as f:
            f.write(text)
        return path

    def test_read_file(self):
        config = govc_exporter._get_config(self.write(CONFIG_YAML), environ={})
        self.assertEqual('vc.example.com', config['host'])
        self.assertEqual('Lab', config['Name'])
        self.assertEqual(15, config['ScrapeTimeout'])
        self.assertEqual(['esx', 'vm'], config['Collectors'])
        self.assertEqual(constants.DEFAULT_LISTEN_PORT, config['ListenPort'])
        self.assertEqual(constants.DEFAULT_MAX_REQUESTS, config['MaxRequests'])
        self.assertTrue(config['IgnoreSSL'])
        self.assertNotIn('IngestToken', config)

    def test_environment_takes_precedence(self):
        environ = {'VC_URL': 'https://other.example.com/sdk', 'VC_PASSWORD': 'from-env'}
        config = govc_exporter._get_config(self.write(CONFIG_YAML), environ=environ)
        self.assertEqual('https://other.example.com/sdk', config['host'])
        self.assertEqual('monitor', config['username'])
        self.assertEqual('from-env', config['password'])

    def test_environment_only(self):
        environ = {'VC_URL': 'vc.example.com', 'VC_USERNAME': 'monitor', 'VC_PASSWORD': 'secret'}
        config = govc_exporter._get_config(os.path.join(self.directory, 'absent.yaml'), environ=environ)
        self.assertEqual(constants.DEFAULT_NAME, config['Name'])
        self.assertNotIn('Collectors', config)

    def test_missing_required_key(self):
        with self.assertRaises(ValueError):
            govc_exporter._get_config(self.write("config:\n  host: vc.example.com\n"), environ={})

    def test_list_of_vcenters_is_rejected(self):
        with self.assertRaises(ValueError):
            govc_exporter._get_config(self.write("config:\n  - host: vc.example.com\n"), environ={})

    def test_ingest_defaults(self):
        config = govc_exporter._get_config(self.write(CONFIG_YAML + "  IngestToken: token\n"), environ={})
        self.assertEqual('token', config['IngestToken'])
        self.assertEqual(constants.DEFAULT_INGEST_ENDPOINT, config['IngestEndpoint'])
        self.assertEqual(constants.DEFAULT_COLLECTION_INTERVAL, config['CollectionInterval'])
        self.assertEqual({}, config['Dimensions'])


class LimitRequestsTests(unittest.TestCase):

    def test_over_limit_gets_503(self):
        entered = threading.Event()
        release = threading.Event()
        statuses = []

        def slow_app(environ, start_response):
            entered.set()
            release.wait(5)
            start_response('200 OK', [])
            return [b'ok']

        app = govc_exporter.limit_requests(slow_app, 1)

        def start_response(status, headers):
            statuses.append(status)

        first = threading.Thread(target=app, args=({}, start_response))
        first.start()
        self.assertTrue(entered.wait(5))
        body = app({}, start_response)
        release.set()
        first.join(5)
        self.assertEqual([b'Too many concurrent requests\n'], body)
        self.assertEqual(['503 Service Unavailable', '200 OK'], statuses)

        app({}, start_response)
        self.assertEqual('200 OK', statuses[-1])
