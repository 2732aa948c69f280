"""
biliaudio.fetch - Media byte stream retrieval.

Opens the direct audio URL as a single-consumer byte stream, either handed
straight to the encoder (piped mode) or drained to disk first (buffered mode).
"""

from __future__ import annotations
