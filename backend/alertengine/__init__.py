"""Alert engine: webhook ingestion and rule-tree strategy evaluation."""
