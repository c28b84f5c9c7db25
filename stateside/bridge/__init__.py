"""Boundary clients — the only code in Stateside that performs I/O.

Modules
-------
transport
    Shared ``httpx.Client`` construction and the tenacity retry policy.
live_data
    ``LiveDataClient`` fetches processing times and bulletin charts with an
    in-memory TTL cache; ``load_snapshot`` degrades to last-known data or
    static defaults instead of raising.
case_status
    ``CaseStatusClient`` scrapes the USCIS case-status page into a
    normalized ``CaseStatusResult`` or raises ``CaseStatusUnavailable``.
"""
