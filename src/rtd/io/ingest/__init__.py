from rtd.io.ingest.images import IMAGE_EXTENSIONS, iter_image_paths

__all__ = ["IMAGE_EXTENSIONS", "iter_image_paths"]
