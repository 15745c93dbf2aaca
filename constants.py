#!/usr/bin/env python

NAMESPACE = 'govc'

DEFAULT_NAME = 'vcenter'

DEFAULT_LISTEN_ADDRESS = '0.0.0.0'

DEFAULT_LISTEN_PORT = 9752

DEFAULT_MAX_REQUESTS = 40

DEFAULT_SCRAPE_TIMEOUT = 30  # 30 seconds

DEFAULT_COLLECTION_INTERVAL = 20  # 20 seconds

DEFAULT_TIMEOUT = 60  # 1 minute

DEFAULT_INGEST_ENDPOINT = 'https://ingest.signalfx.com'

DEFAULT_INGEST_TIMEOUT = 10

INGEST_BATCH_SIZE = 100

METRIC_SOURCE = "govc_exporter"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

DEFAULT_LOG_LEVEL = 'INFO'

CONFIG_FILE = '/etc/govc_exporter/config.yaml'

# Label value for an ancestor, pool or host that does not exist.
NONE_LABEL = 'NONE'

# Label value for an ancestry walk that failed.
ERROR_LABEL = 'ERROR'

NOT_DEFINED_LABEL = 'not defined'
