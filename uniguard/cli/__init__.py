"""uniguard CLI - diagnostic tools for the security pipeline."""
