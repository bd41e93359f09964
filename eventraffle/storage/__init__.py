from .api import StorageClient, generate_object_name

__all__ = ["StorageClient", "generate_object_name"]
