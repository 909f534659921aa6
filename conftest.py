import os
import tempfile
from pathlib import Path

# Keep settings.ini and log files out of the working tree during tests
_test_home = Path(tempfile.mkdtemp(prefix='inventory_optimization_tests_'))
_config_dir = _test_home / 'config'
_config_dir.mkdir()
(_config_dir / 'settings.ini').write_text(
    "[DATABASE]\n"
    f"url = sqlite:///{(_test_home / 'default.db').as_posix()}\n"
    "echo = False\n"
    "\n"
    "[LOGGING]\n"
    "level = INFO\n"
    "format = %(asctime)s - %(name)s - %(levelname)s - %(message)s\n"
    f"directory = {(_test_home / 'logs').as_posix()}\n"
    "max_size_mb = 1\n"
    "backup_count = 1\n"
    "console_output = False\n"
    "\n"
    "[BATCH_PROCESS]\n"
    "max_workers = 2\n"
    "\n"
    "[BUSINESS_RULES]\n"
    "lead_time_days = 7\n"
    "service_z = 1.645\n"
    "service_level = 95.0\n"
    "mean_window_size = 7\n"
    "variance_window_size = 6\n"
    "aggregation_policy = latest-row\n"
)
os.environ['INVENTORY_OPT_CONFIG_DIR'] = str(_config_dir)
