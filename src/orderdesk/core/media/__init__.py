from .uploader import ImageUploader

__all__ = ["ImageUploader"]
