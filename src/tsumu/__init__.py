"""tsumu - cached delivery of generated speech and pictures for sentence study."""

__version__ = "0.1.0"
__all__ = ["AssetEngine"]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    if name == "AssetEngine":
        from .engine import AssetEngine

        return AssetEngine
    raise AttributeError(f"module 'tsumu' has no attribute {name!r}")
