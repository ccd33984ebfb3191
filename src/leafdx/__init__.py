"""LeafDx: plant-disease classification for leaf images."""

__version__ = "0.1.0"
