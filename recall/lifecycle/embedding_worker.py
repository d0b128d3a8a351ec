"""
Embedding Processor - Keeps entry embeddings in sync with entry text.

Entries are queued by id and drained by a single background thread, one at
a time with a short pause between items. Batch sweeps pick up entries that
have no embedding yet. A failure on one entry is logged and counted; the
loop moves on to the next.
"""

import logging
import queue
import threading
import time
from datetime import timedelta
from typing import Optional

logger = logging.getLogger("recall.lifecycle")


class EmbeddingProcessor:
    """Background (re)embedding of journal entries. Enqueue is idempotent."""

    def __init__(self, maxsize: Optional[int] = None):
        if maxsize is None:
            import recall
            maxsize = recall.get_config().queue_maxsize
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._pending: set[str] = set()
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._started = False
        self._lock = threading.Lock()

    def _ensure_started(self):
        """Lazily start the drain thread on first enqueue (again after stop)."""
        if self._started:
            return
        with self._lock:
            if self._started:
                return
            self._started = True
            self._running = True
            self._thread = threading.Thread(target=self._run, daemon=True, name="embedding-processor")
            self._thread.start()
            logger.info("[Embed] Processor thread started")

    def stop(self):
        """Stop the drain thread after the item in progress. Pending entries wait for a restart."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._started = False
            thread = self._thread
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass
        if thread and thread.is_alive():
            thread.join(timeout=2.0)
        logger.info("[Embed] Processor thread stopped")

    def join(self):
        """Block until every queued entry has been handled."""
        self._queue.join()

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def queue_entry(self, entry_id: str) -> bool:
        """
        Queue an entry for (re)embedding (non-blocking).

        Returns False when the entry is already waiting in the queue or the
        queue is full. An entry being processed right now can be queued again.
        """
        self._ensure_started()
        with self._lock:
            if entry_id in self._pending:
                logger.debug(f"[Embed] Entry {entry_id} already queued")
                return False
            self._pending.add(entry_id)
        try:
            self._queue.put_nowait(entry_id)
        except queue.Full:
            with self._lock:
                self._pending.discard(entry_id)
            logger.warning("[Embed] Queue full, dropping entry %s", entry_id)
            return False
        logger.debug(f"[Embed] Queued entry {entry_id}")
        return True

    def _run(self):
        """Main drain loop."""
        import recall

        logger.info("[Embed] Processor loop starting")
        # A thread replaced by a restart exits after its current item
        while self._running and self._thread is threading.current_thread():
            try:
                entry_id = self._queue.get(timeout=1.0)
            except queue.Empty:
                continue
            if entry_id is None:
                # Stop sentinel; a stale one left from an earlier stop is ignored
                self._queue.task_done()
                continue
            with self._lock:
                self._pending.discard(entry_id)
            try:
                self.process_entry(entry_id)
            except Exception as e:
                logger.error(f"[Embed] Failed to process entry {entry_id}: {e}", exc_info=True)
            finally:
                self._queue.task_done()
            time.sleep(recall.get_config().queue_delay_seconds)
        logger.info("[Embed] Processor loop exiting")

    def process_entry(self, entry_id: str) -> bool:
        """
        Analyze, rebuild searchable text for, and embed one entry.

        Returns False when skipped: its embedding is current and was refreshed
        within the skip window, or its text was edited while embedding (the
        edit's own re-queue embeds the new text).

        Raises:
            LookupError: Unknown entry
            EmbeddingError: The provider failed
        """
        import recall
        from recall.core.db import parse_timestamp, utcnow
        from recall.core.embeddings import get_embedding
        from recall.core.insights import AiInsights, analyze_entry, build_searchable_text
        from recall.core.store import get_entry, update_entry_embedding

        config = recall.get_config()
        entry = get_entry(entry_id)
        if entry is None:
            raise LookupError(f"Entry not found: {entry_id}")

        last_update = parse_timestamp(entry.get("last_embedding_update"))
        if (
            entry.get("content_embedding")
            and last_update is not None
            and entry.get("embedding_version") == config.embedding_version
            and utcnow() - last_update < timedelta(hours=config.skip_recent_update_hours)
        ):
            logger.debug(f"[Embed] Skipping entry {entry_id}, embedded at {last_update}")
            return False

        if config.analyze_entries:
            insights = analyze_entry(entry)
        else:
            insights = AiInsights.from_stored(entry.get("ai_insights"))

        searchable_text = build_searchable_text(
            entry.get("title"), entry.get("content", ""), entry.get("tags"), insights,
        )
        embedding = get_embedding(searchable_text)
        written = update_entry_embedding(
            entry_id,
            embedding,
            searchable_text,
            ai_insights=insights.model_dump() if config.analyze_entries else None,
            source=entry,
        )
        if not written:
            return False
        logger.info(f"[Embed] Updated embedding for entry {entry_id} ({len(embedding)}d)")
        return True

    def process_missing_embeddings(self, user_id: Optional[str] = None, limit: int = 10) -> dict:
        """
        Synchronously embed up to `limit` entries that have no embedding.

        Returns:
            {"processed": int, "errors": int, "total_found": int}
        """
        import recall
        from recall.core.store import find_entries_missing_embeddings

        config = recall.get_config()
        entry_ids = find_entries_missing_embeddings(user_id=user_id, limit=limit)
        logger.info(f"[Embed] Found {len(entry_ids)} entries missing embeddings")

        processed = 0
        errors = 0
        for i, entry_id in enumerate(entry_ids):
            try:
                if self.process_entry(entry_id):
                    processed += 1
            except Exception as e:
                errors += 1
                logger.error(f"[Embed] Failed to process entry {entry_id}: {e}", exc_info=True)
            if i < len(entry_ids) - 1:
                time.sleep(config.batch_delay_seconds)

        logger.info(f"[Embed] Batch complete: processed={processed} errors={errors}")
        return {"processed": processed, "errors": errors, "total_found": len(entry_ids)}

    def reprocess_all(self, user_id: Optional[str] = None) -> int:
        """Queue every entry (optionally one user's) for re-embedding. Returns the number queued."""
        from recall.core.store import list_entry_ids

        queued = sum(1 for entry_id in list_entry_ids(user_id) if self.queue_entry(entry_id))
        logger.info(f"[Embed] Queued {queued} entries for reprocessing")
        return queued


# Singleton
_processor: Optional[EmbeddingProcessor] = None
_processor_lock = threading.Lock()


def get_embedding_processor() -> EmbeddingProcessor:
    """Get the global embedding processor (creates if needed)."""
    global _processor
    if _processor is None:
        with _processor_lock:
            if _processor is None:
                _processor = EmbeddingProcessor()
    return _processor
