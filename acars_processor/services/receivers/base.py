"""
Receiver interface.

A receiver delivers a finished APMessage somewhere. Failures raise
ReceiverError; the step chain logs them and keeps going with the other
receivers.
"""
from acars_processor.apmessage import APMessage


class Receiver:
    """Base class for receivers."""

    name = "receiver"

    async def submit(self, message: APMessage):
        raise NotImplementedError
