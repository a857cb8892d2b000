"""gigglemap: places, people and the distances between them."""

__all__ = []
