"""Script to insert sample notes and index them."""

import asyncio

from note_rag.core.dependencies import ServiceContainer
from note_rag.models.document import Document

SAMPLE_NOTES = [
    {
        "title": "Go concurrency: goroutines and channels",
        "content": "# Go concurrency\n\n"
        "The scheduler runs goroutines on an M-P-G model, so switching between them is far cheaper than "
        "switching threads. Channels express ownership transfer and back-pressure; buffers absorb bursts "
        "but an oversized buffer hides blocking.\n\n"
        "```go\nfunc main() {\n  ch := make(chan int, 8)\n  go func() { for i := 0; i < 100; i++ { ch <- i }; close(ch) }()\n"
        "  for v := range ch { fmt.Println(v) }\n}\n```",
    },
    {
        "title": "Virtual memory",
        "content": "# Virtual memory\n\n"
        "Page tables map virtual addresses to physical frames. The TLB caches recent translations, and a "
        "page fault loads the missing page from disk, evicting another page if memory is full.",
    },
    {
        "title": "B+ tree indexes",
        "content": "# B+ trees\n\n"
        "Interior nodes hold only keys, leaves hold records and are linked for range scans. "
        "High fan-out keeps the tree shallow, so lookups touch few pages.",
    },
]


async def seed_notes() -> None:
    """Insert sample notes into PostgreSQL and index each one."""
    services = ServiceContainer()
    await services.initialize()
    try:
        for note in SAMPLE_NOTES:
            async with services.database.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO notes (title, content, created_at, updated_at, is_deleted)
                    VALUES ($1, $2, NOW(), NOW(), 0)
                    RETURNING id, updated_at
                    """,
                    note["title"],
                    note["content"],
                )
            document = Document(id=row["id"], updated_at=row["updated_at"], **note)
            report = await services.retrieval.index_document(document)
            print(f"Inserted note {document.id}: {document.title} ({len(report.stored)} fragments)")
    finally:
        await services.shutdown()

    print(f"\nSeeded {len(SAMPLE_NOTES)} notes")


if __name__ == "__main__":
    asyncio.run(seed_notes())
