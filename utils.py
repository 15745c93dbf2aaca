import logging
import sys

import constants


class ExporterLogger(logging.Logger):
    """
    Logger writing to the exporter log file, or to stderr when no file is configured.
    """
    destination = None
    default_level = logging.INFO

    def __init__(self, name, level=None):
        logging.Logger.__init__(self, name, level if level is not None else self.default_level)
        self.propagate = False
        self.reset_handler()

    def reset_handler(self):
        for handler in list(self.handlers):
            self.removeHandler(handler)
            handler.close()
        if self.destination:
            handler = logging.FileHandler(self.destination, mode='a')
        else:
            handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(constants.LOG_FORMAT))
        self.addHandler(handler)


def configure_logging(log_file=None, log_level=constants.DEFAULT_LOG_LEVEL):
    """
    Sets the destination and level of the exporter loggers, including the ones already created.
    :param log_file: Path of the log file, None for stderr
    :param log_level: Level name, eg: INFO
    :return: null

    """
    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        raise ValueError("Unknown log level : {0}".format(log_level))
    ExporterLogger.destination = log_file
    ExporterLogger.default_level = level
    logging.setLoggerClass(ExporterLogger)
    for existing in list(logging.Logger.manager.loggerDict.values()):
        if isinstance(existing, ExporterLogger):
            existing.setLevel(level)
            existing.reset_handler()


def b2f(value):
    return 1.0 if value else 0.0
