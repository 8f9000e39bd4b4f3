"""
Ingestion — turning uploaded bytes into indexed, owner-tagged chunks.

Extraction, chunking and embedding run strictly in sequence for one
document; independent documents ingest concurrently on the
:class:`~docchat.ingestion.pipeline.IngestionWorker`.
"""
