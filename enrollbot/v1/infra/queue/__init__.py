"""
In-memory job and notification queues for group enrollment.

This package provides:
- Two strict FIFO queues (group jobs, outbound notifications)
- Per-document progress aggregation with a single terminal signal
- Sequential, paced worker loops with bounded retries
- Crash supervision with capped backoff and a bounded shutdown drain
"""
