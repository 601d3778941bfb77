from .checkpoint_store import ChatCheckpointStore

__all__ = ["ChatCheckpointStore"]
