"""
LINEA - Lineage Event Normalization, Error classification and Alerting

Consumes provenance events from a data-flow engine, classifies them as
informational or erroneous, and routes them to a search index and to an
e-mail alerting channel.
"""

__version__ = "0.1.0"
