"""Core module - CRM-neutral models, caching and observability.

This module contains the table/qualifier models, the session store and
single-flight cache, and logging/metrics. It is intentionally CRM-agnostic.

CRM-specific logic (Salesforce, etc.) belongs in /connectors/.
"""

__version__ = "1.0.0"
