"""
Latency harness for membership reconfiguration on replicated key-value clusters.

The package drives sustained write load against a cluster leader, issues a
single membership-reconfiguration call, watches secondary clusters for the
resulting leadership change and writes one consolidated latency report.
"""
