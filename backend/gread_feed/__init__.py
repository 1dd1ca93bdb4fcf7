"""GRead activity feed engine: tolerant decoding, threading, moderated paging."""

__version__ = "0.1.0"
