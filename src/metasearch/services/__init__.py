"""Service layer orchestrations for MetaSearch.

Import the concrete modules (``metasearch.services.pipeline`` and friends)
directly; the ingestion package depends on ``services.prompts`` so this
package does not re-export the pipeline.
"""
