import argparse
import socket
import sys

from packaging.version import parse as parse_version

import constants
import govc_exporter
import inventory_client

DEFAULT_VERSION = '6.5.0'
REFERENCE_ARTICLE = "https://kb.vmware.com/s/article/2107096"


class BColors:
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKGREEN = '\033[0;32m'
    WARNING = '\033[1;33m'
    FAIL = '\033[0;31m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    UNDERLINE = '\033[4m'
    TICK = u'✔'
    CROSS = u'✘'


def is_connected(hostname, port):
    try:
        socket.create_connection((socket.gethostbyname(hostname), port), 2).close()
        print("Able to connect to {0}{1}{2}:{3}\t{4}{5}".format(BColors.OKGREEN, BColors.BOLD, hostname, port,
                                                                 BColors.TICK, BColors.ENDC))
        return True
    except OSError:
        print("Unable to connect to {0}{1}{2}:{3}\t{4}{5}".format(BColors.FAIL, BColors.BOLD, hostname, port,
                                                                   BColors.CROSS, BColors.ENDC))
        print("{0}Please check the network connectivity of the exporter host{1}".format(BColors.WARNING,
                                                                                       BColors.ENDC))
        return False


def connect_to_vcenter(config):
    try:
        session = inventory_client.open_session(config['host'], config['username'], config['password'],
                                                ignore_ssl=config['IgnoreSSL'])
        print("The exporter is able to connect to vCenter host : {0}{1}{2}\t{3}{4}".format(
            BColors.OKGREEN, BColors.BOLD, config['host'], BColors.TICK, BColors.ENDC))
    except inventory_client.InventoryError:
        print("The exporter is unable to connect to vCenter host : {0}{1}{2}\t{3}{4}".format(
            BColors.FAIL, BColors.BOLD, config['host'], BColors.CROSS, BColors.ENDC))
        print("{0}Please check the credentials provided{1}".format(BColors.WARNING, BColors.ENDC))
        session = None
    return session


def check_version(session):
    """
    Prints the vCenter version and whether it is supported.
    :param session: InventorySession
    :return: Boolean

    """
    version = session.version
    supported = parse_version(version) >= parse_version(DEFAULT_VERSION)
    if supported:
        print("vCenter version : {0}{1}{2}{3}\t{4}{5}{6}{7}".format(BColors.OKBLUE, BColors.BOLD,
                                                                    version, BColors.ENDC, BColors.OKGREEN,
                                                                    BColors.BOLD, BColors.TICK, BColors.ENDC))
    else:
        print("vCenter version : {0}{1}{2}{3}\t{4}{5}{6}{7}".format(BColors.OKBLUE, BColors.BOLD,
                                                                    version, BColors.ENDC, BColors.FAIL,
                                                                    BColors.BOLD, BColors.CROSS, BColors.ENDC))
        print("{0}Please check the following article before starting the exporter to avoid any issues : "
              "{1}{2}{3}{4}".format(BColors.WARNING, BColors.BOLD, BColors.UNDERLINE,
                                    REFERENCE_ARTICLE, BColors.ENDC))
    return supported


def check(config):
    host, port = inventory_client.parse_url(config['host'])
    if not is_connected(host, port):
        return False
    session = connect_to_vcenter(config)
    if session is None:
        return False
    try:
        return check_version(session)
    finally:
        session.close()


def perform_basic_checks(argv=None):
    parser = argparse.ArgumentParser(description='Checks that the exporter can reach vCenter.')
    parser.add_argument('--config-file', default=constants.CONFIG_FILE)
    args = parser.parse_args(argv)
    return check(govc_exporter._get_config(args.config_file))


if __name__ == '__main__':
    sys.exit(0 if perform_basic_checks() else 1)
