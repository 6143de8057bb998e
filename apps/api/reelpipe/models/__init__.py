from reelpipe.models.ingestion_job import IngestionJob

__all__ = ["IngestionJob"]
