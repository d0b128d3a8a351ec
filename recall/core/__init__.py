from recall.core.store import (
    create_entry,
    update_entry_text,
    get_entry,
    embedding_status,
)
from recall.core.retrieval import (
    SearchResult,
    vector_search,
    keyword_search,
    hybrid_search,
)
from recall.core.candidates import (
    Scope,
    SearchFilters,
    get_candidates,
)
from recall.core.ranking import (
    rank_feed,
    cluster_results,
)
from recall.core.conversation import (
    ConversationAnswer,
    converse,
)
from recall.core.search import search
