"""
biliaudio - Bilibili audio downloader.

Resolves a video into its parts and, for each part, locates the DASH audio
stream, fetches it and transcodes it to an audio file with FFmpeg:
part resolution → audio location → stream fetch → transcode.
"""

__version__ = "0.1.0"
