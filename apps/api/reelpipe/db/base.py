from reelpipe.db.base_class import Base  # noqa: F401

# Import all the models here so that Base has them registered
# This file should NOT be imported by models.
from reelpipe.models.ingestion_job import IngestionJob  # noqa: F401
