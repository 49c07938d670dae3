from .extraction_client import ExtractionClient, build_extraction_client

__all__ = ["ExtractionClient", "build_extraction_client"]
