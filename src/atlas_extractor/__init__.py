"""atlas-extractor — media page URL to playable audio stream or playlist.

Built on the yt-dlp Python API with a strict layered architecture.
"""

from atlas_extractor.version import __version__

__all__: list[str] = ["__version__"]
