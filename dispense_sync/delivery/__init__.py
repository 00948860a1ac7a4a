"""
Downstream delivery of batches over HTTP.
"""

from .outcome import Delivered, Rejected, SendOutcome, TransportFailure
from .sender import BatchSender

__all__ = ["BatchSender", "Delivered", "Rejected", "SendOutcome", "TransportFailure"]
