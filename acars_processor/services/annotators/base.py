"""
Annotator interface.

An annotator returns a partial APMessage with keys namespaced by the
annotator (``tar1090Latitude``, ``ollamaQuestion``). The step chain merges
the result into the message. Errors are raised as AnnotatorError and
logged by the chain, which then carries on without the annotation.
"""
from typing import Optional

from acars_processor.apmessage import APMessage, select_fields
from acars_processor.schemas import ACARSMessage, MessageKind, UpstreamMessage, VDLM2Message


class Annotator:
    """Base class for annotators."""

    name = "annotator"

    def __init__(self, selected_fields: Optional[list[str]] = None):
        self.selected_fields = list(selected_fields or [])

    def default_fields(self) -> list[str]:
        """Every key this annotator can emit, sorted."""
        return []

    async def annotate_acars(self, record: ACARSMessage, message: APMessage) -> APMessage:
        return {}

    async def annotate_vdlm2(self, record: VDLM2Message, message: APMessage) -> APMessage:
        return {}

    async def annotate(self, kind: MessageKind, record: UpstreamMessage, message: APMessage) -> APMessage:
        """Annotate a record of either kind, keeping only selected fields."""
        if kind == MessageKind.ACARS:
            annotation = await self.annotate_acars(record, message)
        else:
            annotation = await self.annotate_vdlm2(record, message)
        return select_fields(annotation, self.selected_fields)
