import argparse
import datetime
import logging
import os
import signal
import threading
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

import signalfx
import yaml
from prometheus_client import CollectorRegistry, ProcessCollector, make_wsgi_app

import constants
import utils
from exporter import Exporter
from sinks import SignalFxSink

logging.setLoggerClass(utils.ExporterLogger)
logger = logging.getLogger('GovcExporter')
stop_event = threading.Event()

REQUIRED_KEYS = ('host', 'username', 'password')

ENV_OVERRIDES = {
    'host': 'VC_URL',
    'username': 'VC_USERNAME',
    'password': 'VC_PASSWORD',
}


def _handle_exit_signal(signum, stack):
    """
    Custom Signal handler to handle exit signal.
    :param signum: Exit Signal
    :param stack:
    :return: null
    """
    logger.info("Signal {0} received. Exiting gracefully".format(signum))
    stop_event.set()


def _read_config_file(config_file):
    if not os.path.exists(config_file):
        logger.warning("Config file {0} not found, using the environment only".format(config_file))
        return {}
    with open(config_file) as f:
        data_map = yaml.safe_load(f) or {}
    conf = data_map.get('config') or {}
    if not isinstance(conf, dict):
        raise ValueError("The config section must hold the settings of a single vCenter")
    return conf


def _get_config(config_file=constants.CONFIG_FILE, environ=None):
    """
    Open config file and get the exporter configuration. VC_URL, VC_USERNAME and
    VC_PASSWORD take precedence over the file.
    :return: dict

    """
    logger.info("Reading Config")
    environ = os.environ if environ is None else environ
    conf = _read_config_file(config_file)
    for key, variable in ENV_OVERRIDES.items():
        if environ.get(variable):
            conf[key] = environ[variable]
    for key in REQUIRED_KEYS:
        if not conf.get(key):
            logger.error('Missing required config settings : {0}'.format(key))
            raise ValueError("Missing required config settings : {0}".format(key))

    plugin_config = {
        'host': conf['host'],
        'username': conf['username'],
        'password': conf['password'],
        'Name': conf.get('Name', constants.DEFAULT_NAME),
        'IgnoreSSL': conf.get('IgnoreSSL', True),
        'ListenAddress': conf.get('ListenAddress', constants.DEFAULT_LISTEN_ADDRESS),
        'ListenPort': int(conf.get('ListenPort', constants.DEFAULT_LISTEN_PORT)),
        'MaxRequests': int(conf.get('MaxRequests', constants.DEFAULT_MAX_REQUESTS)),
        'ScrapeTimeout': conf.get('ScrapeTimeout', constants.DEFAULT_SCRAPE_TIMEOUT),
        'AnnotationLabels': conf.get('AnnotationLabels', False),
        'ExcludeMetrics': conf.get('ExcludeMetrics', {}),
        'LogFile': conf.get('LogFile'),
        'LogLevel': conf.get('LogLevel', constants.DEFAULT_LOG_LEVEL),
    }
    if 'Collectors' in conf:
        plugin_config['Collectors'] = conf['Collectors']
    if 'IngestToken' in conf:
        plugin_config['IngestToken'] = conf['IngestToken']
        plugin_config['IngestEndpoint'] = conf.get('IngestEndpoint', constants.DEFAULT_INGEST_ENDPOINT)
        plugin_config['IngestTimeout'] = conf.get('IngestTimeout', constants.DEFAULT_INGEST_TIMEOUT)
        plugin_config['CollectionInterval'] = conf.get('CollectionInterval', constants.DEFAULT_COLLECTION_INTERVAL)
        plugin_config['Dimensions'] = conf.get('Dimensions', {})
    return plugin_config


def limit_requests(app, max_requests):
    """
    Wraps a WSGI application so that at most max_requests are served at once.
    Requests above the limit get a 503.
    """
    semaphore = threading.BoundedSemaphore(max_requests)

    def limited_app(environ, start_response):
        if not semaphore.acquire(blocking=False):
            logger.warning("Too many concurrent scrapes, rejecting request")
            start_response('503 Service Unavailable', [('Content-Type', 'text/plain')])
            return [b'Too many concurrent requests\n']
        try:
            return app(environ, start_response)
        finally:
            semaphore.release()

    return limited_app


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        logger.debug("{0} - {1}".format(self.address_string(), format % args))


def _start_http_server(exporter, config):
    registry = CollectorRegistry()
    registry.register(exporter)
    ProcessCollector(registry=registry)
    app = limit_requests(make_wsgi_app(registry), config['MaxRequests'])
    httpd = make_server(config['ListenAddress'], config['ListenPort'], app,
                        server_class=_ThreadingWSGIServer, handler_class=_QuietHandler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    logger.info("Listening on {0}:{1}".format(config['ListenAddress'], config['ListenPort']))
    return httpd


def _create_signalfx_ingest(config):
    """
    Creates and returns the SignalFX ingest client.
    :return: Ingest Client

    """
    client = signalfx.SignalFx()
    return client.ingest(config['IngestToken'], endpoint=config['IngestEndpoint'],
                         timeout=config['IngestTimeout'])


def _push_loop(exporter, ingest, config):
    """
    Sends the samples of every scrape to SignalFx until the exit signal is received.
    """
    while not stop_event.is_set():
        start_time = datetime.datetime.now()
        try:
            sink = SignalFxSink(ingest, config['Dimensions'])
            count = exporter.push(sink)
            logger.info("Sent {0} datapoints for {1}".format(count, exporter.get_instance_id()))
        except Exception:
            logger.exception("Failed to send metrics for {0}".format(exporter.get_instance_id()))
        exec_time = (datetime.datetime.now() - start_time).total_seconds()
        wait_time = config['CollectionInterval'] - exec_time
        if wait_time < 0:
            logger.warning("Execution took a lot of time : {0} seconds".format(exec_time))
        else:
            stop_event.wait(wait_time)


def _run(config):
    """
    Serves the metrics endpoint, and pushes to SignalFx when an ingest token is configured,
    until the exit signal is received.
    :param config: Exporter configuration.
    :return: null

    """
    for signum in (signal.SIGTERM, signal.SIGINT, signal.SIGUSR1):
        signal.signal(signum, _handle_exit_signal)
    exporter = Exporter(config)
    httpd = _start_http_server(exporter, config)
    ingest = None
    try:
        if 'IngestToken' in config:
            ingest = _create_signalfx_ingest(config)
            _push_loop(exporter, ingest, config)
        else:
            stop_event.wait()
    finally:
        if ingest is not None:
            ingest.stop()
        httpd.shutdown()
        logger.info("Exporter stopped")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Exports vCenter inventory metrics.')
    parser.add_argument('--config-file', default=constants.CONFIG_FILE,
                        help='YAML configuration file (default: %(default)s)')
    args = parser.parse_args(argv)
    config = _get_config(args.config_file)
    utils.configure_logging(config['LogFile'], config['LogLevel'])
    _run(config)


if __name__ == '__main__':
    main()
