"""
Read/transfer APIs over the Tallman store.

    - retrieval_api: keyword-overlap context retrieval for prompts
    - transfer_api:  knowledge export and validated bulk import
"""

from .retrieval_api import (
    ContextRetriever,
    ScoredDocument,
    format_context,
    rank_documents,
    retrieve_context,
)
from .transfer_api import (
    export_knowledge,
    export_knowledge_file,
    import_knowledge,
    import_knowledge_file,
    parse_knowledge_payload,
)

__all__ = [
    "ContextRetriever",
    "ScoredDocument",
    "format_context",
    "rank_documents",
    "retrieve_context",
    "export_knowledge",
    "export_knowledge_file",
    "import_knowledge",
    "import_knowledge_file",
    "parse_knowledge_payload",
]
