"""
biliaudio.transcode - External encoder bridge.

Runs FFmpeg once per part, reading either a downloaded file or a live
stream on stdin, and writes the final audio file.
"""

from __future__ import annotations
