"""ACARS and VDLM2 message processor: ingest, filter, annotate and forward."""

__version__ = "1.0.0"
