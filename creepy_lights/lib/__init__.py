"""Hardware and protocol libraries."""
