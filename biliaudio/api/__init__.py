"""
biliaudio.api - Bilibili web API access.

Resolves a video id into parts (page list) and a part into a direct
DASH audio URL (play URL).
"""

from __future__ import annotations
