"""Token accounting, compaction and summarization."""
