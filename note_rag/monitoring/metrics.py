"""Prometheus metrics for monitoring."""

from prometheus_client import Counter, Histogram

documents_indexed_total = Counter(
    "rag_documents_indexed_total", "Total number of indexing passes")
fragments_stored_total = Counter(
    "rag_fragments_stored_total", "Total number of fragments persisted")
fragments_skipped_total = Counter(
    "rag_fragments_skipped_total", "Total number of fragments that failed to persist")
vectors_published_total = Counter(
    "rag_vectors_published_total", "Total number of vectors upserted into the index")
index_duration_seconds = Histogram(
    "rag_index_duration_seconds", "Indexing duration in seconds", buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0])

search_requests_total = Counter(
    "rag_search_requests_total", "Total number of similarity searches")
answer_requests_total = Counter(
    "rag_answer_requests_total", "Total number of answer requests")
degraded_responses_total = Counter(
    "rag_degraded_responses_total", "Responses served by a fallback tier", ["reason"])
query_latency_seconds = Histogram(
    "rag_query_latency_seconds", "Query latency in seconds", buckets=[0.1, 0.5, 1.0, 2.0, 5.0])
