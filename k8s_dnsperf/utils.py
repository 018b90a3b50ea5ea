"""Helpers shared by the command line and the sinks."""

import logging
import re
import sys
from typing import Dict, List, Optional

LOG_FORMAT = '%(asctime)s %(levelname)s %(filename)s:%(lineno)d > %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Go-style durations such as "1m", "30s", "1h30m" or "500ms"
DURATION_PATTERN = re.compile(r'(\d+(?:\.\d+)?)(ms|s|m|h)')
DURATION_UNITS = {'ms': 0.001, 's': 1, 'm': 60, 'h': 3600}


def configure_logging(level: str = 'info') -> None:
    """Send log records of level and above to stderr."""
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT, stream=sys.stderr)
    # urllib3 logs every request at debug level
    logging.getLogger('urllib3').setLevel(max(numeric_level, logging.INFO))


def parse_duration(value: str) -> float:
    """Convert a duration string to seconds. Plain numbers are seconds."""
    value = value.strip()
    try:
        return float(value)
    except ValueError:
        pass
    pos = 0
    total = 0.0
    for match in DURATION_PATTERN.finditer(value):
        if match.start() != pos:
            break
        total += float(match.group(1)) * DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(value):
        raise ValueError(f"invalid duration {value!r}")
    return total


def prepare_headers(remote_write_headers: Optional[List[str]]) -> Dict[str, str]:
    """Prepare headers dictionary from command-line arguments."""
    headers = {}
    if remote_write_headers:
        for header in remote_write_headers:
            if '=' in header:
                key, value = header.split('=', 1)
                headers[key] = value
    return headers
