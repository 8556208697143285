"""Chat pipeline: payloads, prompt assembly and answer generation."""
