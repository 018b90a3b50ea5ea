"""Parser for dnsperf statistics output."""

import re
from typing import Dict, Optional, Pattern

from .errors import ParseError
from .models import PerNodeResult

# One pattern per labeled field, anchored to the label dnsperf prints
FIELD_PATTERNS: Dict[str, Pattern] = {
    'queries_sent': re.compile(r'Queries sent:\s+(\d+)'),
    'queries_completed': re.compile(r'Queries completed:\s+(\d+)'),
    'queries_lost': re.compile(r'Queries lost:\s+(\d+)'),
    'queries_interrupted': re.compile(r'Queries interrupted:\s+(\d+)'),
    'qps': re.compile(r'Queries per second:\s+([\d.]+)'),
    'avg_latency': re.compile(r'Average Latency \(s\):\s+([\d.]+)'),
    'min_latency': re.compile(r'Average Latency \(s\):.*?min\s+([\d.]+)'),
    'max_latency': re.compile(r'Average Latency \(s\):.*?max\s+([\d.]+)'),
    'latency_stdev': re.compile(r'Latency StdDev \(s\):\s+([\d.]+)'),
}

# Not printed by every dnsperf version
OPTIONAL_FIELDS = frozenset({'queries_lost', 'queries_interrupted'})

COUNTER_FIELDS = ('queries_sent', 'queries_completed', 'queries_lost', 'queries_interrupted')
LATENCY_FIELDS = ('avg_latency', 'min_latency', 'max_latency', 'latency_stdev')

MILLISECONDS_PER_SECOND = 1000


class DnsperfParser:
    """Parser for the final statistics block of a dnsperf run.

    Example input::

        Statistics:

          Queries sent:         52083
          Queries completed:    52083 (100.00%)
          Queries lost:         0 (0.00%)

          Response codes:       NOERROR 26042 (50.00%), NXDOMAIN 26041 (50.00%)
          Average packet size:  request 37, response 82
          Run time (s):         5.009131
          Queries per second:   10397.611881

          Average Latency (s):  0.009546 (min 0.004271, max 0.167582)
          Latency StdDev (s):   0.005814

    Lines other than the ones in FIELD_PATTERNS are ignored.
    """

    def __init__(self, latency_scale: float = MILLISECONDS_PER_SECOND):
        """Initialize the parser.

        Args:
            latency_scale: Factor applied to every latency value. dnsperf reports
                seconds, the default converts them to milliseconds.
        """
        self.latency_scale = latency_scale

    def parse(self, raw: str) -> PerNodeResult:
        """Parse dnsperf output and return the per-node statistics."""
        values = {}
        for name, pattern in FIELD_PATTERNS.items():
            value = self._extract(raw, name, pattern)
            if name in COUNTER_FIELDS:
                values[name] = int(value) if value is not None else 0
            elif name in LATENCY_FIELDS:
                values[name] = value * self.latency_scale
            else:
                values[name] = value
        return PerNodeResult(**values)

    def parse_file(self, file_path: str) -> PerNodeResult:
        """Parse a file holding captured dnsperf output."""
        with open(file_path, 'r') as f:
            content = f.read()
        return self.parse(content)

    def _extract(self, text: str, name: str, pattern: Pattern) -> Optional[float]:
        match = pattern.search(text)
        if match is None:
            if name in OPTIONAL_FIELDS:
                return None
            raise ParseError(f"Required field {name} not found (pattern {pattern.pattern!r})", field=name)
        try:
            return float(match.group(1))
        except ValueError as e:
            raise ParseError(f"Invalid value {match.group(1)!r} for {name}: {e}", field=name) from e


def parse(raw: str) -> PerNodeResult:
    """Parse dnsperf output with the default millisecond latency scale."""
    return DnsperfParser().parse(raw)
