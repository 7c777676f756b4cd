"""Annotators that enrich messages before they are sent."""
from acars_processor.services.annotators.adsb_exchange import ADSBExchangeAnnotator
from acars_processor.services.annotators.base import Annotator
from acars_processor.services.annotators.local import ACARSAnnotator, VDLM2Annotator
from acars_processor.services.annotators.ollama import OllamaAnnotator
from acars_processor.services.annotators.tar1090 import Tar1090Annotator

__all__ = [
    "Annotator",
    "ACARSAnnotator",
    "VDLM2Annotator",
    "ADSBExchangeAnnotator",
    "Tar1090Annotator",
    "OllamaAnnotator",
]
