# inventory_optimization/logging_setup.py
"""Log files for the Inventory Optimization System.

Every named logger writes to ``<directory>/<name>.log``. Module loggers
obtained with ``logging.getLogger(__name__)`` end up in
``inventory_optimization.log`` through the root logger. Computation
anomalies get a file of their own, ``anomalies.log``, so operators can
review them without digging through recalculation traffic.
"""
import logging
import logging.handlers
from datetime import datetime
from pathlib import Path

from inventory_optimization.config import config

ROOT_LOG_NAME = 'inventory_optimization'
ANOMALY_LOG_NAME = 'anomalies'

class Logger:
    """Owns the log handlers of the process."""

    _instance = None
    _loggers = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        settings = config.log_config
        self._directory = Path(settings['directory'])
        self._directory.mkdir(parents=True, exist_ok=True)

        self._level = getattr(logging, settings['level'].upper(), logging.INFO)
        self._formatter = logging.Formatter(settings['format'])
        self._max_bytes = settings['max_size_mb'] * 1024 * 1024
        self._backup_count = settings['backup_count']
        self._console = settings['console_output']

        self._attach_handlers(logging.getLogger(), ROOT_LOG_NAME)

        self._app_logger = self.get_logger('app')
        self._anomaly_logger = self.get_logger(ANOMALY_LOG_NAME)

        self._initialized = True

    def _attach_handlers(self, target, file_stem):
        """Replace the handlers of ``target`` with a rotating file (and console)."""
        target.setLevel(self._level)
        for handler in target.handlers[:]:
            target.removeHandler(handler)
            handler.close()

        handlers = [logging.handlers.RotatingFileHandler(
            self._directory / f"{file_stem}.log",
            maxBytes=self._max_bytes,
            backupCount=self._backup_count
        )]
        if self._console:
            handlers.append(logging.StreamHandler())

        for handler in handlers:
            handler.setFormatter(self._formatter)
            target.addHandler(handler)

    def get_logger(self, name):
        """Named logger writing to its own file.

        Named loggers do not propagate, so their records are not repeated
        in the root log file.
        """
        named = self._loggers.get(name)
        if named is None:
            named = logging.getLogger(name)
            self._attach_handlers(named, name)
            named.propagate = False
            self._loggers[name] = named
        return named

    @property
    def app_logger(self):
        return self._app_logger

    @property
    def anomaly_logger(self):
        """Logger behind ``anomalies.log``."""
        return self._anomaly_logger

    def log_anomaly(self, product_id, anomaly):
        """Record a ComputationAnomaly met while recalculating a product.

        Args:
            product_id: Product being recalculated
            anomaly: ComputationAnomaly instance
        """
        details = f" {anomaly.details}" if anomaly.details else ""
        self._anomaly_logger.warning(
            f"product={product_id} code={anomaly.code} {anomaly.message}{details}"
        )

    def log_exception(self, logger_name, exception, message=None):
        """Log an error together with its traceback."""
        text = f"{message}: {exception}" if message else str(exception)
        self.get_logger(logger_name).error(text, exc_info=exception)

    def job_start(self, job_name, parameters=None):
        """Announce a batch job in ``batch.log``.

        Returns:
            Handle to pass to job_end
        """
        job_log = self.get_logger('batch')
        job_log.info(f"Starting {job_name}" + (f" with {parameters}" if parameters else ""))
        return {'job_name': job_name, 'started': datetime.now()}

    def job_end(self, handle, success=True, counts=None):
        """Close a batch job entry opened by job_start.

        Returns:
            Time the job took
        """
        job_log = self.get_logger('batch')
        duration = datetime.now() - handle['started']
        outcome = 'Finished' if success else 'Failed'
        level = logging.INFO if success else logging.ERROR

        job_log.log(level, f"{outcome} {handle['job_name']} in {duration}")
        if counts:
            job_log.info(f"{handle['job_name']} counts: {counts}")

        return duration

# Global logger instance
logger = Logger()

def get_logger(name):
    """Get a named logger with its own log file."""
    return logger.get_logger(name)

def log_exception(logger_name, exception, message=None):
    logger.log_exception(logger_name, exception, message)

def log_anomaly(product_id, anomaly):
    logger.log_anomaly(product_id, anomaly)
